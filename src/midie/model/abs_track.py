"""AbsTrack — editable absolute-tick view of one MIDI track.

mido tracks store delta ticks. Editing is far simpler on absolute ticks,
so a track is checked out as a list of :class:`AbsoluteEvent`, mutated
freely, and folded back into delta form with :meth:`AbsTrack.rebuild_delta`.

Sorting is lazy. Mutations only set ``dirty``; :meth:`AbsTrack.clean`
re-sorts, pins end_of_track to the last tick and restamps delta times.
Anything that relies on event positions calls ``clean()`` first.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import mido

from midie.errors import ValidationError
from midie.model.events import (
    AbsoluteEvent,
    describe,
    is_end_of_track,
    is_note_off,
    is_note_on,
    make_note,
)
from midie.observer import NULL_OBSERVER, EventObserver


# ---------------------------------------------------------------------------
# NoteSpan — paired note_on/note_off
# ---------------------------------------------------------------------------

@dataclass
class NoteSpan:
    """A note_on and the note_off that ends it."""

    abs_tick: int
    duration_ticks: int
    note: int
    velocity: int
    channel: int
    on_index: int
    off_index: int


# ---------------------------------------------------------------------------
# Tick conversion utilities
# ---------------------------------------------------------------------------

def delta_to_absolute(messages: Iterable[mido.Message]) -> list[AbsoluteEvent]:
    """Running sum of delta times. Messages are copied, order is kept."""
    result: list[AbsoluteEvent] = []
    abs_tick = 0
    for msg in messages:
        abs_tick += msg.time
        result.append(AbsoluteEvent(abs_tick, msg.copy()))
    return result


def absolute_to_delta(events: Sequence[AbsoluteEvent]) -> list[mido.Message]:
    """Fold *events* back to messages with delta times, in the given order."""
    prev = 0
    result: list[mido.Message] = []
    for event in events:
        result.append(event.message.copy(time=event.abs_tick - prev))
        prev = event.abs_tick
    return result


def _sort_key(event: AbsoluteEvent) -> tuple[bool, int, int]:
    if is_end_of_track(event.message):
        return (True, 0, 0)
    # note_off first at a shared tick, everything else keeps its order
    return (False, event.abs_tick, 0 if is_note_off(event.message) else 1)


def sort_events(events: Iterable[AbsoluteEvent]) -> list[AbsoluteEvent]:
    """Stable sort: by tick, note_off before other events, end_of_track last."""
    return sorted(events, key=_sort_key)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_note_values(abs_tick: int, note: int, velocity: int, channel: int) -> None:
    if not _is_int(abs_tick) or abs_tick < 0:
        raise ValidationError(f"Tick must be a non-negative integer, got {abs_tick!r}")
    for name, value in (("Note", note), ("Velocity", velocity), ("Channel", channel)):
        if not _is_int(value):
            raise ValidationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= note <= 127:
        raise ValidationError(f"Note {note} out of range (0-127)")
    if not 0 <= velocity <= 127:
        raise ValidationError(f"Velocity {velocity} out of range (0-127)")
    if not 0 <= channel <= 15:
        raise ValidationError(f"Channel {channel} out of range (0-15)")


# ---------------------------------------------------------------------------
# AbsTrack
# ---------------------------------------------------------------------------

class AbsTrack:
    """Absolute-tick events plus a dirty flag.

    When ``dirty`` is False the events are sorted (note_off before
    note_on at equal ticks), a single end_of_track sits last at the
    highest tick, and every ``message.time`` is the delta from the
    previous event.
    """

    def __init__(
        self,
        events: Iterable[AbsoluteEvent] | None = None,
        dirty: bool = True,
        observer: EventObserver | None = None,
    ) -> None:
        self._events: list[AbsoluteEvent] = list(events) if events is not None else []
        self.dirty = dirty
        self.observer = observer if observer is not None else NULL_OBSERVER

    @classmethod
    def without_sort(
        cls,
        events: Iterable[AbsoluteEvent],
        observer: EventObserver | None = None,
    ) -> AbsTrack:
        """Wrap events that are already in wire order."""
        return cls(events, dirty=False, observer=observer)

    @classmethod
    def from_delta(
        cls,
        messages: Iterable[mido.Message],
        observer: EventObserver | None = None,
    ) -> AbsTrack:
        """Build a clean track from a delta-time message stream."""
        return cls.without_sort(delta_to_absolute(messages), observer=observer)

    # -- Container protocol -------------------------------------------------

    @property
    def events(self) -> list[AbsoluteEvent]:
        """The live event list. Call :meth:`mark_dirty` after editing it directly."""
        return self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AbsoluteEvent]:
        return iter(self._events)

    def __repr__(self) -> str:
        return f"AbsTrack(events={len(self._events)}, dirty={self.dirty})"

    def copy(self) -> AbsTrack:
        """Independent copy (events and messages are duplicated)."""
        return AbsTrack(
            [event.copy() for event in self._events],
            dirty=self.dirty,
            observer=self.observer,
        )

    def mark_dirty(self) -> None:
        self.dirty = True

    # -- Insertion ----------------------------------------------------------

    def append(self, event: AbsoluteEvent) -> None:
        """Add any event. Its position is fixed up on the next clean()."""
        if event.abs_tick < 0:
            raise ValidationError(f"Tick must be non-negative, got {event.abs_tick}")
        self._events.append(event)
        self.dirty = True

    def extend(self, events: Iterable[AbsoluteEvent]) -> None:
        new_events = list(events)
        for event in new_events:
            if event.abs_tick < 0:
                raise ValidationError(f"Tick must be non-negative, got {event.abs_tick}")
        self._events.extend(new_events)
        self.dirty = True

    def append_notes(self, notes: Iterable[tuple[int, int, int, int]]) -> None:
        """Append ``(abs_tick, note, velocity, channel)`` entries.

        Velocity 0 produces a note_off. All entries are validated before
        any of them is added.
        """
        entries = list(notes)
        for abs_tick, note, velocity, channel in entries:
            _check_note_values(abs_tick, note, velocity, channel)
        new_events = [
            AbsoluteEvent(abs_tick, make_note(note, velocity, channel))
            for abs_tick, note, velocity, channel in entries
        ]
        self._events.extend(new_events)
        self.dirty = True

    def append_note(self, note: tuple[int, int, int], channel: int) -> None:
        """Append one ``(abs_tick, note, velocity)``; velocity 0 means note_off."""
        abs_tick, pitch, velocity = note
        self.append_notes([(abs_tick, pitch, velocity, channel)])

    def ensure_end_of_track(self) -> None:
        """Add an end_of_track if the track has none."""
        if any(is_end_of_track(event.message) for event in self._events):
            return
        tick = max((event.abs_tick for event in self._events), default=0)
        self._events.append(AbsoluteEvent(tick, mido.MetaMessage("end_of_track")))
        self.dirty = True

    # -- Deletion -----------------------------------------------------------

    def delete_note(
        self,
        abs_tick: int,
        note: int,
        velocity: int,
        channel: int | None = None,
    ) -> bool:
        """Remove the note starting at *abs_tick* together with its note_off.

        The first note_on at *abs_tick* matching *note* and *velocity*
        (and *channel* when given) is paired with the next note_off of
        the same note and channel. Returns False when there's no such
        note_on or it has no note_off; the track is left as is.
        """
        self.clean()
        events = self._events
        start = bisect_left(events, abs_tick, key=lambda e: e.abs_tick)
        for on_idx in range(start, len(events)):
            on = events[on_idx]
            if on.abs_tick != abs_tick:
                break
            msg = on.message
            if not is_note_on(msg) or msg.note != note or msg.velocity != velocity:
                continue
            if channel is not None and msg.channel != channel:
                continue
            off_idx = self._find_note_off(on_idx + 1, msg.note, msg.channel)
            if off_idx is None:
                self.observer.on_event(
                    logging.DEBUG,
                    f"note {note} at tick {abs_tick} has no note_off, not deleted",
                )
                return False
            # off_idx > on_idx, remove it first so on_idx stays valid
            del events[off_idx]
            del events[on_idx]
            self.dirty = True
            return True

        self.observer.on_event(
            logging.DEBUG,
            f"no note_on {note} velocity {velocity} at tick {abs_tick}",
        )
        return False

    def _find_note_off(self, start: int, note: int, channel: int) -> int | None:
        for i in range(start, len(self._events)):
            msg = self._events[i].message
            if is_note_off(msg) and msg.note == note and msg.channel == channel:
                return i
        return None

    # -- Sort / rebuild -----------------------------------------------------

    def clean(self) -> None:
        """Restore ordering and delta times if the track is dirty."""
        if self.dirty:
            self._sort_rebuild_delta_time()
            self.dirty = False

    def _sort_rebuild_delta_time(self) -> None:
        events = sort_events(self._events)

        eot_count = 0
        while eot_count < len(events) and is_end_of_track(events[-1 - eot_count].message):
            eot_count += 1
        if eot_count > 1:
            # keep only the last one
            del events[-eot_count:-1]
            self.observer.on_event(
                logging.WARNING,
                f"dropped {eot_count - 1} duplicate end_of_track event(s)",
            )

        if eot_count and len(events) > 1:
            eot = events[-1]
            last_tick = events[-2].abs_tick
            if eot.abs_tick != last_tick:
                self.observer.on_event(
                    logging.DEBUG,
                    f"end_of_track moved from tick {eot.abs_tick} to {last_tick}",
                )
                eot.abs_tick = last_tick

        prev = 0
        for event in events:
            delta = event.abs_tick - prev
            if event.message.time != delta:
                event.message = event.message.copy(time=delta)
            prev = event.abs_tick

        self._events = events

    def rebuild_delta(self) -> mido.MidiTrack:
        """Clean, then return the events as a delta-time mido track."""
        self.clean()
        return mido.MidiTrack(event.message.copy() for event in self._events)

    # -- Queries ------------------------------------------------------------

    def last_tick(self) -> int:
        """Tick of the final event (0 for an empty track)."""
        self.clean()
        if not self._events:
            return 0
        return self._events[-1].abs_tick

    def notes(self) -> list[NoteSpan]:
        """Pair note_on/note_off events (FIFO per note and channel)."""
        self.clean()
        pending: dict[tuple[int, int], list[int]] = defaultdict(list)
        spans: list[NoteSpan] = []
        for idx, event in enumerate(self._events):
            msg = event.message
            if is_note_on(msg):
                pending[(msg.note, msg.channel)].append(idx)
            elif is_note_off(msg):
                waiting = pending[(msg.note, msg.channel)]
                if not waiting:
                    continue
                on_idx = waiting.pop(0)
                on = self._events[on_idx]
                spans.append(NoteSpan(
                    abs_tick=on.abs_tick,
                    duration_ticks=event.abs_tick - on.abs_tick,
                    note=msg.note,
                    velocity=on.message.velocity,
                    channel=msg.channel,
                    on_index=on_idx,
                    off_index=idx,
                ))
        spans.sort(key=lambda s: (s.abs_tick, s.note))
        return spans

    def event_rows(self) -> list[tuple[str, int, str]]:
        """``(type, abs_tick, data)`` for each event in current order."""
        rows = []
        for event in self._events:
            kind, data = describe(event.message)
            rows.append((kind, event.abs_tick, data))
        return rows

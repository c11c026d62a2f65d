"""Event predicates and the absolute-tick event value.

Messages are plain mido objects (``mido.Message`` for channel messages,
``mido.MetaMessage`` / ``mido.UnknownMetaMessage`` for meta events). The
core never reaches into their wire encoding beyond ``msg.bytes()``; it
asks capability questions instead (is this a note-on? a tempo change?).

A note_on with velocity 0 is a note-off everywhere in this package.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import mido


# Meta command bytes (the byte after 0xFF)
META_END_OF_TRACK = 0x2F
META_TEMPO = 0x51
META_TIME_SIGNATURE = 0x58


class EventKind(Enum):
    """The categories the track algorithms care about."""

    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"
    TEMPO = "tempo"
    TIME_SIGNATURE = "time_signature"
    END_OF_TRACK = "end_of_track"
    OTHER_META = "other_meta"
    OTHER_CHANNEL = "other_channel"


# ---------------------------------------------------------------------------
# Meta message access
# ---------------------------------------------------------------------------

def meta_command(msg: mido.Message) -> int | None:
    """Return the meta type byte of *msg*, or None for channel/sysex messages."""
    if not msg.is_meta:
        return None
    if msg.type == "unknown_meta":
        return msg.type_byte
    return msg.bytes()[1]


def meta_payload(msg: mido.Message) -> bytes:
    """Raw data bytes of a meta message (without 0xFF, type and length)."""
    if not msg.is_meta:
        raise TypeError(f"{msg.type} is not a meta message")
    raw = msg.bytes()
    # raw = [0xFF, type, <variable-length size>, data...]
    pos = 2
    length = 0
    while True:
        byte = raw[pos]
        pos += 1
        length = (length << 7) | (byte & 0x7F)
        if not byte & 0x80:
            break
    return bytes(raw[pos:pos + length])


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_note_on(msg: mido.Message) -> bool:
    return msg.type == "note_on" and msg.velocity > 0


def is_note_off(msg: mido.Message) -> bool:
    return msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0)


def is_end_of_track(msg: mido.Message) -> bool:
    if msg.type == "end_of_track":
        return True
    return msg.type == "unknown_meta" and msg.type_byte == META_END_OF_TRACK


def is_tempo(msg: mido.Message) -> bool:
    return meta_command(msg) == META_TEMPO


def is_time_signature(msg: mido.Message) -> bool:
    return meta_command(msg) == META_TIME_SIGNATURE


def classify(msg: mido.Message) -> EventKind:
    """Map a mido message onto an :class:`EventKind`."""
    if is_note_on(msg):
        return EventKind.NOTE_ON
    if is_note_off(msg):
        return EventKind.NOTE_OFF
    command = meta_command(msg)
    if command is None:
        return EventKind.OTHER_CHANNEL
    if command == META_END_OF_TRACK:
        return EventKind.END_OF_TRACK
    if command == META_TEMPO:
        return EventKind.TEMPO
    if command == META_TIME_SIGNATURE:
        return EventKind.TIME_SIGNATURE
    return EventKind.OTHER_META


# ---------------------------------------------------------------------------
# Note helpers
# ---------------------------------------------------------------------------

def note_on_fields(msg: mido.Message) -> tuple[int, int, int] | None:
    """``(channel, note, velocity)`` for a sounding note_on, else None."""
    if not is_note_on(msg):
        return None
    return msg.channel, msg.note, msg.velocity


def note_off_fields(msg: mido.Message) -> tuple[int, int, int] | None:
    """``(channel, note, velocity)`` for a note_off or velocity-0 note_on."""
    if not is_note_off(msg):
        return None
    return msg.channel, msg.note, msg.velocity


def make_note(note: int, velocity: int, channel: int) -> mido.Message:
    """Build a note_on, or a note_off when *velocity* is 0. Time is 0."""
    if velocity == 0:
        return mido.Message("note_off", channel=channel, note=note, velocity=0)
    return mido.Message("note_on", channel=channel, note=note, velocity=velocity)


def describe(msg: mido.Message) -> tuple[str, str]:
    """Short ``(type, data)`` labels for list views."""
    on = note_on_fields(msg)
    if on is not None:
        _, note, velocity = on
        return "note on", f"{note} {velocity}"
    off = note_off_fields(msg)
    if off is not None:
        return "note off", f"{off[1]}"
    if msg.is_meta:
        return msg.type, str(list(meta_payload(msg)[:5]))
    return "midi message", str(msg.bytes()[:5])


# ---------------------------------------------------------------------------
# AbsoluteEvent
# ---------------------------------------------------------------------------

@dataclass
class AbsoluteEvent:
    """A message pinned to an absolute tick.

    ``message.time`` holds the wire delta-time and is only trustworthy
    on a clean track.
    """

    abs_tick: int
    message: mido.Message

    @property
    def kind(self) -> EventKind:
        return classify(self.message)

    def copy(self) -> AbsoluteEvent:
        return AbsoluteEvent(self.abs_tick, self.message.copy())

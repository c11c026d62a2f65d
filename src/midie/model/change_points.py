"""Change-point maps: tempo and time signature as step functions over ticks.

A map is a sorted list of ``(abs_tick, value)`` samples. The value in
effect at a tick is the one from the latest change at or before it.
Maps are snapshots: build a new one after editing the source track.
"""

from __future__ import annotations

from typing import Generic, Iterable, Iterator, TypeVar

from midie.errors import PayloadError, PayloadLengthError
from midie.model.abs_track import AbsTrack
from midie.model.events import is_tempo, is_time_signature, meta_payload

V = TypeVar("V")

TEMPO_PAYLOAD_LENGTH = 3
TIME_SIGNATURE_PAYLOAD_LENGTH = 4


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------

def decode_tempo(payload: bytes) -> int:
    """3-byte microseconds-per-quarter payload to integer BPM (truncated)."""
    if len(payload) != TEMPO_PAYLOAD_LENGTH:
        raise PayloadLengthError("set_tempo", TEMPO_PAYLOAD_LENGTH, len(payload))
    usec = (payload[0] << 16) | (payload[1] << 8) | payload[2]
    if usec == 0:
        raise PayloadError("set_tempo payload encodes 0 microseconds per quarter note")
    return 60_000_000 // usec


def decode_time_signature(payload: bytes) -> tuple[int, int]:
    """4-byte time signature payload to ``(numerator, denominator)``.

    Byte 1 is the denominator's power of two. Clocks-per-click and
    32nds-per-quarter are ignored.
    """
    if len(payload) != TIME_SIGNATURE_PAYLOAD_LENGTH:
        raise PayloadLengthError(
            "time_signature", TIME_SIGNATURE_PAYLOAD_LENGTH, len(payload)
        )
    return payload[0], 2 ** payload[1]


# ---------------------------------------------------------------------------
# ChangePointMap
# ---------------------------------------------------------------------------

class ChangePointMap(Generic[V]):
    """Sorted ``(abs_tick, value)`` changes. Duplicate ticks are allowed."""

    def __init__(
        self,
        changes: Iterable[tuple[int, V]] | None = None,
        need_sort: bool = True,
    ) -> None:
        self.changes: list[tuple[int, V]] = list(changes) if changes is not None else []
        if need_sort:
            self.changes.sort(key=lambda change: change[0])

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[tuple[int, V]]:
        return iter(self.changes)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.changes!r})"

    def append(self, change: tuple[int, V]) -> None:
        self.changes.append(change)
        self.changes.sort(key=lambda c: c[0])

    def delete(self, change: tuple[int, V]) -> int:
        """Remove every entry equal to *change*. Returns how many went."""
        before = len(self.changes)
        self.changes = [c for c in self.changes if c != change]
        return before - len(self.changes)

    def lookup(self, abs_tick: int) -> V | None:
        """Value of the latest change at or before *abs_tick*, or None."""
        found: tuple[int, V] | None = None
        for change in self.changes:
            # >= so that the last of several same-tick entries wins
            if change[0] <= abs_tick and (found is None or change[0] >= found[0]):
                found = change
        return found[1] if found is not None else None


class TempoMap(ChangePointMap[int]):
    """Tempo changes in whole BPM."""

    @classmethod
    def from_track(cls, track: AbsTrack) -> TempoMap:
        changes = [
            (event.abs_tick, decode_tempo(meta_payload(event.message)))
            for event in track
            if is_tempo(event.message)
        ]
        return cls(changes, need_sort=track.dirty)

    def tempo(self, abs_tick: int) -> int | None:
        return self.lookup(abs_tick)


class TimeSignatureMap(ChangePointMap[tuple[int, int]]):
    """Time signature changes as ``(numerator, denominator)``."""

    @classmethod
    def from_track(cls, track: AbsTrack) -> TimeSignatureMap:
        changes = [
            (event.abs_tick, decode_time_signature(meta_payload(event.message)))
            for event in track
            if is_time_signature(event.message)
        ]
        return cls(changes, need_sort=track.dirty)

    def time_signature(self, abs_tick: int) -> tuple[int, int] | None:
        return self.lookup(abs_tick)

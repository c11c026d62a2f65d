"""MidiWorkspace — owns the delta-time tracks of one MIDI file.

Tracks are stored the way mido reads them. Editors check out an
:class:`AbsTrack` (a detached copy), edit it, and commit it back; until
then the stored stream is untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import mido

from midie.errors import TrackIndexError
from midie.lib.gm_families import program_family
from midie.model.abs_track import AbsTrack
from midie.model.change_points import TempoMap, TimeSignatureMap
from midie.observer import NULL_OBSERVER, EventObserver
from midie.serialization.smf import SmfFormat, load_smf, read_smf, write_smf

DEFAULT_PPQN = 480
DEFAULT_TEMPO = 120
DEFAULT_TIME_SIGNATURE = (4, 4)


class MidiWorkspace:
    """A type 1 MIDI file plus checkout/commit of absolute-tick tracks."""

    def __init__(
        self,
        file: mido.MidiFile | None = None,
        observer: EventObserver | None = None,
    ) -> None:
        if file is None:
            file = mido.MidiFile(type=int(SmfFormat.MULTI_TRACK), ticks_per_beat=DEFAULT_PPQN)
        self.file = file
        self.observer = observer if observer is not None else NULL_OBSERVER

    # -- Construction -------------------------------------------------------

    @classmethod
    def new_empty(
        cls,
        ppqn: int = DEFAULT_PPQN,
        tempo: int = DEFAULT_TEMPO,
        time_sig: tuple[int, int] = DEFAULT_TIME_SIGNATURE,
        observer: EventObserver | None = None,
    ) -> MidiWorkspace:
        """Conductor track (time signature, tempo) and one empty track."""
        file = mido.MidiFile(type=int(SmfFormat.MULTI_TRACK), ticks_per_beat=ppqn)

        num, den = time_sig
        conductor = mido.MidiTrack()
        conductor.append(
            mido.MetaMessage(
                "time_signature",
                numerator=num,
                denominator=den,
                clocks_per_click=24,
                notated_32nd_notes_per_beat=8,
                time=0,
            )
        )
        conductor.append(
            mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(tempo), time=0)
        )
        conductor.append(mido.MetaMessage("end_of_track", time=0))
        file.tracks.append(conductor)

        file.tracks.append(mido.MidiTrack([mido.MetaMessage("end_of_track", time=0)]))
        return cls(file, observer=observer)

    @classmethod
    def from_raw(cls, data: bytes, observer: EventObserver | None = None) -> MidiWorkspace:
        """Parse SMF bytes. Raises DecodeError; never returns a partial workspace."""
        observer = observer if observer is not None else NULL_OBSERVER
        return cls(read_smf(data, observer), observer=observer)

    @classmethod
    def from_file(cls, path: str | Path, observer: EventObserver | None = None) -> MidiWorkspace:
        observer = observer if observer is not None else NULL_OBSERVER
        return cls(load_smf(path, observer), observer=observer)

    # -- Properties ---------------------------------------------------------

    @property
    def resolution(self) -> int:
        """Ticks per quarter note."""
        return self.file.ticks_per_beat

    @property
    def format(self) -> SmfFormat:
        return SmfFormat(self.file.type)

    @property
    def track_count(self) -> int:
        return len(self.file.tracks)

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self.file.tracks)

    # -- Raw streams --------------------------------------------------------

    def events(self, index: int) -> list[mido.Message] | None:
        """Copy of the stored delta-time messages, or None if out of range."""
        if not self._in_range(index):
            return None
        return [msg.copy() for msg in self.file.tracks[index]]

    def replace_events(self, index: int, messages: Iterable[mido.Message]) -> None:
        """Overwrite a stored stream with delta-time *messages*."""
        if not self._in_range(index):
            raise TrackIndexError(
                f"Track index {index} out of range (tracks={self.track_count})"
            )
        self.file.tracks[index] = mido.MidiTrack(msg.copy() for msg in messages)

    def add_track(self) -> int:
        """Append a track holding only end_of_track. Returns its index."""
        self.file.tracks.append(mido.MidiTrack([mido.MetaMessage("end_of_track", time=0)]))
        return len(self.file.tracks) - 1

    # -- Checkout / commit --------------------------------------------------

    def checkout_track(self, index: int) -> AbsTrack | None:
        """Detached absolute-tick copy of track *index*, or None."""
        if not self._in_range(index):
            return None
        return AbsTrack.from_delta(self.file.tracks[index], observer=self.observer)

    def commit_track(self, index: int, track: AbsTrack) -> None:
        """Rebuild *track*'s delta times and store it at *index*."""
        if not self._in_range(index):
            raise TrackIndexError(
                f"Track index {index} out of range (tracks={self.track_count})"
            )
        self.file.tracks[index] = track.rebuild_delta()
        self.observer.on_event(
            logging.DEBUG, f"committed track {index} ({len(track)} events)"
        )

    # -- Derived maps -------------------------------------------------------

    def tempo_map(self, index: int = 0) -> TempoMap | None:
        track = self.checkout_track(index)
        if track is None:
            return None
        return TempoMap.from_track(track)

    def time_signature_map(self, index: int = 0) -> TimeSignatureMap | None:
        track = self.checkout_track(index)
        if track is None:
            return None
        return TimeSignatureMap.from_track(track)

    # -- Track descriptions -------------------------------------------------

    def track_info(self) -> list[tuple[int, str]]:
        """``(index, description)`` for every track."""
        return [
            (i, _describe_track(i, track)) for i, track in enumerate(self.file.tracks)
        ]

    # -- Output -------------------------------------------------------------

    def finalize(self) -> mido.MidiFile:
        """Copy of the file with every track cleaned and rebuilt."""
        out = mido.MidiFile(
            type=self.file.type,
            ticks_per_beat=self.file.ticks_per_beat,
            charset=self.file.charset,
        )
        for track in self.file.tracks:
            abs_track = AbsTrack.from_delta(track, observer=self.observer)
            abs_track.ensure_end_of_track()
            abs_track.mark_dirty()
            out.tracks.append(abs_track.rebuild_delta())
        return out

    def serialize(self) -> bytes:
        """SMF bytes for the finalized workspace. Stored tracks are unchanged."""
        return write_smf(self.finalize())

    def save(self, path: str | Path) -> None:
        Path(path).write_bytes(self.serialize())


def _describe_track(index: int, track: mido.MidiTrack) -> str:
    name = ""
    channel: int | None = None
    program: int | None = None
    for msg in track:
        if msg.type == "track_name" and not name:
            name = msg.name
        elif msg.type == "program_change" and program is None:
            program = msg.program
            channel = msg.channel
        elif channel is None and not msg.is_meta and hasattr(msg, "channel"):
            channel = msg.channel

    label = name or f"Track {index}"
    details = []
    if channel is not None:
        details.append(f"ch:{channel + 1}")
        family = program_family(program or 0, channel)
        if family and (program is not None or family == "drums"):
            details.append(family)
    if details:
        label += f" ({' '.join(details)})"
    return label

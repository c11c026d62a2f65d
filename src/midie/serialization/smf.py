"""Standard MIDI File boundary: bytes <-> ``mido.MidiFile``.

Everything downstream assumes a multi-track (type 1) layout. Type 0
files are split on load; type 2 files are rejected.

Usage::

    from midie.serialization.smf import read_smf, write_smf

    midi = read_smf(data)
    data = write_smf(midi)
"""

from __future__ import annotations

import logging
import struct
from enum import IntEnum
from io import SEEK_CUR, BytesIO
from pathlib import Path

import mido
from mido.messages.specs import SPEC_BY_STATUS
from mido.midifiles.midifiles import (
    read_byte,
    read_chunk_header,
    read_file_header,
    read_variable_int,
)

from midie.errors import DecodeError, EncodeError, PayloadLengthError
from midie.model.abs_track import absolute_to_delta, delta_to_absolute
from midie.model.events import (
    META_TEMPO,
    META_TIME_SIGNATURE,
    AbsoluteEvent,
    is_end_of_track,
)
from midie.observer import NULL_OBSERVER, EventObserver


class SmfFormat(IntEnum):
    SINGLE_TRACK = 0
    MULTI_TRACK = 1
    MULTI_SEQUENCE = 2


# mido raises a mix of these for truncated or malformed input
_CODEC_ERRORS = (
    OSError, EOFError, ValueError, KeyError, IndexError, TypeError, struct.error,
)


def split_single_track(track: mido.MidiTrack) -> tuple[mido.MidiTrack, mido.MidiTrack]:
    """Split a type 0 track into (conductor, performance).

    Meta events go to the conductor, channel and sysex events to the
    performance track. Both end at the original end-of-track tick.
    """
    events = delta_to_absolute(track)
    end_tick = events[-1].abs_tick if events else 0

    conductor = [e for e in events if e.message.is_meta and not is_end_of_track(e.message)]
    performance = [e for e in events if not e.message.is_meta]
    conductor.append(AbsoluteEvent(end_tick, mido.MetaMessage("end_of_track")))
    performance.append(AbsoluteEvent(end_tick, mido.MetaMessage("end_of_track")))

    return (
        mido.MidiTrack(absolute_to_delta(conductor)),
        mido.MidiTrack(absolute_to_delta(performance)),
    )


def normalize_format(
    midi: mido.MidiFile,
    observer: EventObserver = NULL_OBSERVER,
) -> mido.MidiFile:
    """Return *midi* as a type 1 file, converting type 0 in place."""
    if midi.type == SmfFormat.MULTI_TRACK:
        return midi
    if midi.type == SmfFormat.MULTI_SEQUENCE:
        raise DecodeError("type 2 (asynchronous) files can't be converted to multi-track")
    if midi.type != SmfFormat.SINGLE_TRACK:
        raise DecodeError(f"unknown SMF format {midi.type}")
    if len(midi.tracks) != 1:
        raise DecodeError(f"type 0 file must have exactly 1 track, found {len(midi.tracks)}")

    conductor, performance = split_single_track(midi.tracks[0])
    midi.tracks = [conductor, performance]
    midi.type = int(SmfFormat.MULTI_TRACK)
    observer.on_event(
        logging.INFO,
        f"converted type 0 file to type 1 ({len(conductor)} conductor, "
        f"{len(performance)} performance events)",
    )
    return midi


# Declared payload length for meta events that mido re-encodes to a
# fixed size on load, which would otherwise hide a malformed length.
_FIXED_META_LENGTHS = {
    META_TEMPO: ("set_tempo", 3),
    META_TIME_SIGNATURE: ("time_signature", 4),
}


def check_meta_lengths(data: bytes) -> None:
    """Raise DecodeError if a tempo or time signature meta event in *data*
    declares a payload length other than its fixed size.

    Walks the track chunks the same way mido's reader does. Call it on
    data mido has already parsed.
    """
    infile = BytesIO(data)
    _, num_tracks, _ = read_file_header(infile)
    for track_index in range(num_tracks):
        _, size = read_chunk_header(infile)
        start = infile.tell()
        last_status = None
        while infile.tell() - start < size:
            read_variable_int(infile)
            status = read_byte(infile)
            if status < 0x80:
                # running status, the byte just read is the first data byte
                infile.seek(SPEC_BY_STATUS[last_status]["length"] - 2, SEEK_CUR)
            elif status == 0xFF:
                meta_type = read_byte(infile)
                length = read_variable_int(infile)
                if meta_type in _FIXED_META_LENGTHS:
                    command, expected = _FIXED_META_LENGTHS[meta_type]
                    if length != expected:
                        raise DecodeError(
                            f"track {track_index}: {command} meta event declares "
                            f"{length} bytes, expected {expected}"
                        ) from PayloadLengthError(command, expected, length)
                infile.seek(length, SEEK_CUR)
            elif status in (0xF0, 0xF7):
                last_status = status
                infile.seek(read_variable_int(infile), SEEK_CUR)
            else:
                last_status = status
                infile.seek(SPEC_BY_STATUS[status]["length"] - 1, SEEK_CUR)
        infile.seek(start + size)


def read_smf(data: bytes, observer: EventObserver = NULL_OBSERVER) -> mido.MidiFile:
    """Parse SMF bytes, check fixed-size meta lengths and normalize to
    type 1. Raises DecodeError.
    """
    try:
        midi = mido.MidiFile(file=BytesIO(data))
    except _CODEC_ERRORS as exc:
        raise DecodeError(f"Could not parse MIDI data: {exc}") from exc
    check_meta_lengths(data)
    return normalize_format(midi, observer)


def load_smf(path: str | Path, observer: EventObserver = NULL_OBSERVER) -> mido.MidiFile:
    """Read a ``.mid`` file from disk. Raises DecodeError."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read {path}: {exc}") from exc
    return read_smf(data, observer)


def write_smf(midi: mido.MidiFile) -> bytes:
    """Encode *midi* to SMF bytes. Raises EncodeError."""
    buf = BytesIO()
    try:
        midi.save(file=buf)
    except _CODEC_ERRORS as exc:
        raise EncodeError(f"Could not encode MIDI data: {exc}") from exc
    return buf.getvalue()

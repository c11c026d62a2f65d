"""Shared fixtures: small in-memory MIDI files built with mido."""

from __future__ import annotations

from io import BytesIO

import mido
import pytest

from midie.workspace import MidiWorkspace


def to_bytes(midi: mido.MidiFile) -> bytes:
    buf = BytesIO()
    midi.save(file=buf)
    return buf.getvalue()


def conductor_track() -> mido.MidiTrack:
    """4/4 at 120 BPM, switching to 140 BPM at tick 960."""
    return mido.MidiTrack([
        mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0),
        mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(120), time=0),
        mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(140), time=960),
        mido.MetaMessage("end_of_track", time=0),
    ])


def piano_track() -> mido.MidiTrack:
    """C4 on 0-480, E4 on 480-960, end_of_track at 960."""
    return mido.MidiTrack([
        mido.MetaMessage("track_name", name="Piano", time=0),
        mido.Message("program_change", channel=0, program=0, time=0),
        mido.Message("note_on", channel=0, note=60, velocity=100, time=0),
        mido.Message("note_off", channel=0, note=60, velocity=0, time=480),
        mido.Message("note_on", channel=0, note=64, velocity=90, time=0),
        mido.Message("note_off", channel=0, note=64, velocity=0, time=480),
        mido.MetaMessage("end_of_track", time=0),
    ])


@pytest.fixture
def type1_bytes() -> bytes:
    midi = mido.MidiFile(type=1, ticks_per_beat=480)
    midi.tracks.append(conductor_track())
    midi.tracks.append(piano_track())
    return to_bytes(midi)


@pytest.fixture
def type0_bytes() -> bytes:
    midi = mido.MidiFile(type=0, ticks_per_beat=96)
    midi.tracks.append(mido.MidiTrack([
        mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(100), time=0),
        mido.Message("note_on", channel=2, note=48, velocity=70, time=0),
        mido.MetaMessage("time_signature", numerator=3, denominator=4, time=96),
        mido.Message("note_off", channel=2, note=48, velocity=0, time=96),
        mido.MetaMessage("end_of_track", time=48),
    ]))
    return to_bytes(midi)


@pytest.fixture
def workspace(type1_bytes: bytes) -> MidiWorkspace:
    return MidiWorkspace.from_raw(type1_bytes)


@pytest.fixture
def empty_workspace() -> MidiWorkspace:
    return MidiWorkspace.new_empty()

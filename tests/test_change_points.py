"""Tests for tempo and time-signature change-point maps."""

from __future__ import annotations

import mido
import pytest

from midie.errors import PayloadError, PayloadLengthError
from midie.model.abs_track import AbsTrack
from midie.model.change_points import (
    ChangePointMap,
    TempoMap,
    TimeSignatureMap,
    decode_tempo,
    decode_time_signature,
)
from midie.model.events import AbsoluteEvent


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------

class TestDecodeTempo:
    def test_120_bpm(self):
        assert decode_tempo(bytes([0x07, 0xA1, 0x20])) == 120

    def test_uses_all_three_bytes(self):
        # 0x0927C0 = 600000 usec -> 100 BPM; reading byte 0 twice would give 60
        assert decode_tempo(bytes([0x09, 0x27, 0xC0])) == 100

    def test_truncates(self):
        # 428571 usec -> 140.0002 BPM
        assert decode_tempo((428571).to_bytes(3, "big")) == 140
        # 700000 usec -> 85.71 BPM
        assert decode_tempo((700000).to_bytes(3, "big")) == 85

    @pytest.mark.parametrize("payload", [b"", b"\x07\xa1", b"\x00\x07\xa1\x20"])
    def test_wrong_length(self, payload):
        with pytest.raises(PayloadLengthError) as excinfo:
            decode_tempo(payload)
        assert excinfo.value.expected == 3
        assert excinfo.value.actual == len(payload)

    def test_zero_tempo(self):
        with pytest.raises(PayloadError):
            decode_tempo(b"\x00\x00\x00")


class TestDecodeTimeSignature:
    def test_four_four(self):
        assert decode_time_signature(bytes([4, 2, 24, 8])) == (4, 4)

    def test_six_eight(self):
        assert decode_time_signature(bytes([6, 3, 24, 8])) == (6, 8)

    def test_wrong_length(self):
        with pytest.raises(PayloadLengthError, match="time_signature"):
            decode_time_signature(bytes([4, 2]))

    def test_length_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_time_signature(b"")


# ---------------------------------------------------------------------------
# ChangePointMap
# ---------------------------------------------------------------------------

class TestChangePointMap:
    def test_lookup(self):
        tempo = TempoMap([(0, 120), (960, 140)])
        assert tempo.lookup(500) == 120
        assert tempo.lookup(960) == 140
        assert tempo.lookup(0) == 120
        assert tempo.lookup(10_000) == 140

    def test_lookup_before_first_change(self):
        tempo = TempoMap([(480, 90)])
        assert tempo.lookup(479) is None

    def test_empty_map(self):
        assert ChangePointMap().lookup(0) is None
        assert len(ChangePointMap()) == 0

    def test_sorted_on_construction(self):
        cpm = ChangePointMap([(960, "b"), (0, "a")])
        assert list(cpm) == [(0, "a"), (960, "b")]

    def test_need_sort_false_keeps_order(self):
        cpm = ChangePointMap([(960, "b"), (0, "a")], need_sort=False)
        assert cpm.changes == [(960, "b"), (0, "a")]
        # lookup still finds the latest tick at or before the query
        assert cpm.lookup(1000) == "b"

    def test_append_resorts(self):
        tempo = TempoMap([(0, 120), (960, 140)])
        tempo.append((480, 100))
        assert tempo.changes == [(0, 120), (480, 100), (960, 140)]
        assert tempo.tempo(500) == 100

    def test_duplicate_tick_last_wins(self):
        tempo = TempoMap([(0, 120)])
        tempo.append((0, 90))
        assert tempo.tempo(0) == 90

    def test_delete_removes_all_equal(self):
        tempo = TempoMap([(0, 120), (480, 100), (480, 100), (960, 140)])
        assert tempo.delete((480, 100)) == 2
        assert tempo.changes == [(0, 120), (960, 140)]

    def test_delete_needs_exact_pair(self):
        tempo = TempoMap([(480, 100)])
        assert tempo.delete((480, 101)) == 0
        assert tempo.delete((481, 100)) == 0
        assert len(tempo) == 1

    def test_time_signature_alias(self):
        ts = TimeSignatureMap([(0, (4, 4)), (1920, (3, 4))])
        assert ts.time_signature(1919) == (4, 4)
        assert ts.time_signature(1920) == (3, 4)

    def test_repr(self):
        assert repr(TempoMap([(0, 120)])) == "TempoMap([(0, 120)])"


# ---------------------------------------------------------------------------
# Building from tracks
# ---------------------------------------------------------------------------

def _conductor() -> AbsTrack:
    return AbsTrack.from_delta([
        mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0),
        mido.MetaMessage("set_tempo", tempo=500000, time=0),
        mido.Message("note_on", note=60, velocity=1, time=480),
        mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(140), time=480),
        mido.MetaMessage("time_signature", numerator=6, denominator=8, time=960),
        mido.MetaMessage("end_of_track", time=0),
    ])


class TestFromTrack:
    def test_tempo_map(self):
        tempo = TempoMap.from_track(_conductor())
        assert tempo.changes == [(0, 120), (960, 140)]
        assert tempo.tempo(500) == 120
        assert tempo.tempo(960) == 140

    def test_time_signature_map(self):
        ts = TimeSignatureMap.from_track(_conductor())
        assert ts.changes == [(0, (4, 4)), (1920, (6, 8))]

    def test_no_changes(self):
        track = AbsTrack.from_delta([mido.MetaMessage("end_of_track")])
        assert TempoMap.from_track(track).lookup(0) is None
        assert TimeSignatureMap.from_track(track).lookup(0) is None

    def test_dirty_track_is_sorted(self):
        track = AbsTrack([
            AbsoluteEvent(960, mido.MetaMessage("set_tempo", tempo=600000)),
            AbsoluteEvent(0, mido.MetaMessage("set_tempo", tempo=500000)),
        ])
        tempo = TempoMap.from_track(track)
        assert tempo.changes == [(0, 120), (960, 100)]
        assert track.dirty is True

    def test_bad_tempo_payload_fails(self):
        track = AbsTrack.from_delta([
            mido.MetaMessage("set_tempo", tempo=500000),
            mido.UnknownMetaMessage(type_byte=0x51, data=[1, 2], time=10),
        ])
        with pytest.raises(PayloadLengthError):
            TempoMap.from_track(track)

    def test_bad_time_signature_payload_fails(self):
        track = AbsTrack.from_delta([
            mido.UnknownMetaMessage(type_byte=0x58, data=[4, 2, 24]),
        ])
        with pytest.raises(PayloadLengthError):
            TimeSignatureMap.from_track(track)

"""General MIDI Level 1 program families (8 programs each)."""

from __future__ import annotations

GM_FAMILIES: list[str] = [
    "piano",
    "chromatic-percussion",
    "organ",
    "guitar",
    "bass",
    "strings",
    "ensemble",
    "brass",
    "reed",
    "pipe",
    "synth-lead",
    "synth-pad",
    "synth-effects",
    "ethnic",
    "percussive",
    "sound-effects",
]

DRUM_CHANNEL = 9  # channel 10 user-facing


def program_family(program: int, channel: int | None = None) -> str | None:
    """Family name for a program number (0-127); "drums" on channel 9."""
    if channel == DRUM_CHANNEL:
        return "drums"
    if not 0 <= program <= 127:
        return None
    return GM_FAMILIES[program // 8]

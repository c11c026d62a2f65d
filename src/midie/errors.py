"""Custom exception hierarchy for midie."""

from __future__ import annotations


class MidieError(Exception):
    """Base exception for all midie errors."""


class ValidationError(MidieError, ValueError):
    """Invalid values passed to a track mutation (tick, note, velocity, channel).

    Subclasses both MidieError and ValueError so callers can keep using
    ``except ValueError``.
    """


class DecodeError(MidieError):
    """Malformed SMF bytes, unreadable file, or a format that can't be normalized."""


class PayloadError(MidieError, ValueError):
    """A meta-event payload that can't be interpreted."""


class PayloadLengthError(PayloadError):
    """A tempo or time-signature payload with an unexpected byte count."""

    def __init__(self, command: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{command} payload must be {expected} bytes, got {actual}"
        )
        self.command = command
        self.expected = expected
        self.actual = actual


class TrackIndexError(MidieError, IndexError):
    """Track index out of range for the workspace."""


class EncodeError(MidieError):
    """mido refused to write the workspace (bad message values)."""

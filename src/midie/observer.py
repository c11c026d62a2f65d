"""Diagnostics observers.

Model code never talks to a process-wide logger. Components take an
``observer`` and call ``observer.on_event(level, message)`` with a stdlib
``logging`` level constant; the application decides where it goes.
"""

from __future__ import annotations

import logging
from typing import Protocol


class EventObserver(Protocol):
    def on_event(self, level: int, message: str) -> None: ...


class NullObserver:
    """Discards everything. Default for tracks and workspaces."""

    def on_event(self, level: int, message: str) -> None:
        pass


class LoggingObserver:
    """Forwards to a :mod:`logging` logger (``"midie"`` unless given one)."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("midie")

    def on_event(self, level: int, message: str) -> None:
        self.logger.log(level, message)


class RecordingObserver:
    """Keeps ``(level, message)`` pairs in memory."""

    def __init__(self) -> None:
        self.records: list[tuple[int, str]] = []

    def on_event(self, level: int, message: str) -> None:
        self.records.append((level, message))

    def messages(self, level: int | None = None) -> list[str]:
        return [m for lvl, m in self.records if level is None or lvl == level]

    def clear(self) -> None:
        self.records.clear()


NULL_OBSERVER = NullObserver()

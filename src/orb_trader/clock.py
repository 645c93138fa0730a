"""Time source used by the engine for window and auto-exit checks."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, time


class Clock(ABC):
    """Wall-clock abstraction so session boundaries can be driven in tests."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def time_of_day(self) -> time:
        return self.now().time()


class SystemClock(Clock):
    """Local exchange time, read from the host clock."""

    def now(self) -> datetime:
        return datetime.now()

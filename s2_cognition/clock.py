from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Scored timing depends on this interface rather than calling real time or
    frame ticks directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class Calendar(Protocol):
    """Wall-calendar source used for test dates and the retest cooldown."""

    def today(self) -> date: ...

    def utc_now(self) -> datetime: ...


class SystemCalendar:
    def today(self) -> date:
        return date.today()

    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

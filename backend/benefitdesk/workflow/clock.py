"""Injectable source of "now" for the workflow engine.

Engine functions never read ambient time; callers pass a clock so tests
can pin the instant.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def __init__(self, tz_name: str = "UTC") -> None:
        self._tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock:
    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


def wall_time(instant: datetime) -> datetime:
    """Drop the offset from a local instant for wall-clock comparisons.

    ``instant`` must already be in the application zone; clocks built by
    ``build_clock`` guarantee that.
    """
    return instant.replace(tzinfo=None)


def build_clock(tz_name: str, override: Optional[datetime] = None) -> Clock:
    if override is None:
        return SystemClock(tz_name)
    zone = ZoneInfo(tz_name)
    if override.tzinfo is None:
        return FixedClock(override.replace(tzinfo=zone))
    # An override given in another offset is the same instant seen locally.
    return FixedClock(override.astimezone(zone))

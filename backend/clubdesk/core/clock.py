"""
Clock abstraction for the scheduling core.

Deadlines and sweeps depend on "now" and "today"; services receive a clock
instead of calling ``datetime.now()`` so tests and replays can pin time.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol

import pytz

from .config import settings


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""

    def today(self) -> date:
        """Current calendar date in the club's timezone."""


class SystemClock:
    """Wall clock; 'today' is resolved in the configured club timezone."""

    def __init__(self, tz_name: Optional[str] = None) -> None:
        self._tz = pytz.timezone(tz_name or settings.club_timezone)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(self._tz).date()


class FixedClock:
    """Clock pinned to an instant; ``advance`` moves it forward."""

    def __init__(self, current: datetime, tz_name: str = "UTC") -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current
        self._tz = pytz.timezone(tz_name)

    def now(self) -> datetime:
        return self._current

    def today(self) -> date:
        return self._current.astimezone(self._tz).date()

    def advance(self, **delta: float) -> None:
        self._current = self._current + timedelta(**delta)

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current


def default_clock() -> Clock:
    return SystemClock()

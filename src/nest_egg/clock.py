"""Clock and calendar adapter for nest-egg.

Engine code never calls ``datetime.now()`` directly: it receives a Clock,
and does all day/week/month arithmetic through a Calendar bound to the
user's local time zone.
"""

from __future__ import annotations

import calendar as _cal
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, tzinfo


def system_timezone() -> tzinfo:
    """Return the host's local time zone."""
    return datetime.now().astimezone().tzinfo


class Clock(ABC):
    """Injectable source of "now"."""

    tz: tzinfo

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware datetime in ``tz``."""
        ...


class SystemClock(Clock):
    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz or system_timezone()

    def now(self) -> datetime:
        return datetime.now(self.tz)


class DeterministicClock(Clock):
    """Test clock that only moves when told to."""

    def __init__(self, fixed_time: datetime, tz: tzinfo | None = None) -> None:
        self.tz = tz or fixed_time.tzinfo or system_timezone()
        self._now = Calendar(self.tz).localize(fixed_time)

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = Calendar(self.tz).localize(time)

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self._now = self._now + timedelta(days=days, hours=hours)
        return self._now


def add_months(dt: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length.

    Jan 31 + 1 month -> Feb 28 (or 29).
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, _cal.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


class Calendar:
    """Local-calendar arithmetic in a single time zone."""

    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz

    def localize(self, dt: datetime) -> datetime:
        """Convert to local time. Naive datetimes are taken as local wall time."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz)
        return dt.astimezone(self.tz)

    def local_date(self, dt: datetime) -> date:
        return self.localize(dt).date()

    def local_hour(self, dt: datetime) -> int:
        return self.localize(dt).hour

    def weekday(self, dt: datetime) -> int:
        """Local weekday, Monday == 0."""
        return self.local_date(dt).weekday()

    def days_between(self, earlier: datetime, later: datetime) -> int:
        """Whole local calendar days from ``earlier`` to ``later``."""
        return (self.local_date(later) - self.local_date(earlier)).days

    def month_key(self, dt: datetime) -> tuple[int, int]:
        local = self.localize(dt)
        return (local.year, local.month)

    def add_period(self, dt: datetime, frequency: str) -> datetime:
        """Advance by one weekly or monthly period on the local wall clock."""
        local = self.localize(dt)
        if frequency == "weekly":
            return local + timedelta(days=7)
        if frequency == "monthly":
            return add_months(local, 1)
        raise ValueError(f"Unknown frequency: {frequency!r}")

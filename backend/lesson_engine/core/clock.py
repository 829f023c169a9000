"""
Business clock for the lesson engine.

Rules:
- All storage: UTC
- All comparisons: UTC instants
- "Today", weekdays, minute-of-day and holiday keys: the business timezone
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytz

from .config import settings

MINUTES_PER_DAY = 24 * 60


class BusinessClock:
    """Single source of "now" and of local-calendar conversions."""

    def __init__(self, timezone_name: Optional[str] = None):
        self.timezone_name = timezone_name or settings.business_timezone
        self.tz = pytz.timezone(self.timezone_name)

    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.to_local(self.now()).date()

    def to_local(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def minute_of_day(self, instant: datetime) -> int:
        local = self.to_local(instant)
        return local.hour * 60 + local.minute

    def day_of_week(self, day: date) -> int:
        """Weekday index with Sunday as 0."""
        return (day.weekday() + 1) % 7

    def local_to_utc(self, day: date, minutes: int) -> datetime:
        """
        Convert a local date plus minute-of-day to a UTC instant.

        Uses the timezone rules valid on that date. A minute that does not
        exist (spring-forward gap) is shifted forward by the gap.
        """
        naive_dt = datetime.combine(day, time(0, 0)) + timedelta(minutes=minutes)
        try:
            local_dt = self.tz.localize(naive_dt, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            local_dt = self.tz.localize(naive_dt, is_dst=True)
        except pytz.exceptions.NonExistentTimeError:
            local_dt = self.tz.normalize(self.tz.localize(naive_dt, is_dst=False))
        return local_dt.astimezone(timezone.utc)

    def start_of_day(self, day: date) -> datetime:
        return self.local_to_utc(day, 0)

    def end_of_day(self, day: date) -> datetime:
        return self.start_of_day(day + timedelta(days=1))

    def hours_until(self, instant: datetime, now: Optional[datetime] = None) -> float:
        reference = now or self.now()
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return (instant - reference).total_seconds() / 3600

    def format_local(self, instant: datetime) -> str:
        """Render an instant as dd/mm/yyyy HH:MM in the business timezone."""
        return self.to_local(instant).strftime("%d/%m/%Y %H:%M")


class FixedClock(BusinessClock):
    """Clock frozen at a given instant, used by tests and replays."""

    def __init__(self, instant: datetime, timezone_name: Optional[str] = None):
        super().__init__(timezone_name)
        if instant.tzinfo is None:
            instant = self.tz.localize(instant)
        self._instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = self.tz.localize(instant)
        self._instant = instant.astimezone(timezone.utc)

    def advance(self, **kwargs: float) -> None:
        self._instant = self._instant + timedelta(**kwargs)


_default_clock: Optional[BusinessClock] = None


def get_clock() -> BusinessClock:
    global _default_clock
    if _default_clock is None:
        _default_clock = BusinessClock()
    return _default_clock

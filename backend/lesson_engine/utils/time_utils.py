from __future__ import annotations

import calendar
from datetime import date
from typing import NamedTuple

MINUTES_PER_DAY = 24 * 60


class TimeWindow(NamedTuple):
    """Half-open [start, end) interval in minutes since local midnight."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


def minutes_to_time_str(minutes: int) -> str:
    """
    Convert minutes since midnight to HH:MM.

    1440 is rendered as "24:00".
    """
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return "24:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time_str(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight; "24:00" is accepted."""
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time format: {value!r}, expected HH:MM")
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time: {value!r}")
    return hours * 60 + minutes


def validate_window(start: int, end: int) -> TimeWindow:
    if not 0 <= start < end <= MINUTES_PER_DAY:
        raise ValueError(
            f"Invalid window {start}-{end}: expected 0 <= start < end <= {MINUTES_PER_DAY}"
        )
    return TimeWindow(start, end)


def add_months(day: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the last day of a shorter month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))

"""
Canonical clock-time and calendar-day handling.

Every time comparison in the engine goes through this module: labels are
turned into minutes since midnight with ``normalize_time`` and intervals
are compared with ``slots_overlap``. Dates are handled at day granularity
with Sunday-first weekday numbering (Sunday=0 ... Saturday=6).
"""

import re
from datetime import date, datetime, timedelta
from enum import IntEnum
from typing import Union

from salon_scheduler.errors import InvalidDateFormatError, InvalidTimeFormatError

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?P<meridiem>am|pm|a\.m\.|p\.m\.)?$"
)


class Weekday(IntEnum):
    """Day of week, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


def normalize_time(label: str) -> int:
    """Convert a clock-time label to minutes since midnight.

    Accepts 12-hour ("9:30 AM", "9:30AM", "09:30 am", "9 pm") and 24-hour
    ("09:30", "17:00") forms, ignoring case and whitespace.

    Raises:
        InvalidTimeFormatError: If the label is not a valid clock time.

    Examples:
        >>> normalize_time("9:30 AM")
        570
        >>> normalize_time("12:00 am")
        0
        >>> normalize_time("17:45")
        1065
    """
    if not isinstance(label, str):
        raise InvalidTimeFormatError(f"Time label must be a string, got {type(label).__name__}")

    compact = re.sub(r"\s+", "", label).lower()
    match = _TIME_PATTERN.match(compact)
    if not match:
        raise InvalidTimeFormatError(f"Unrecognised time format: {label!r}")

    hour = int(match.group("hour"))
    minute_text = match.group("minute")
    meridiem = match.group("meridiem")

    if minute_text is None and meridiem is None:
        # A bare number is ambiguous
        raise InvalidTimeFormatError(f"Unrecognised time format: {label!r}")
    minute = int(minute_text) if minute_text is not None else 0
    if minute > 59:
        raise InvalidTimeFormatError(f"Minute out of range in {label!r}")

    if meridiem is not None:
        if not 1 <= hour <= 12:
            raise InvalidTimeFormatError(f"Hour out of range for 12-hour time in {label!r}")
        is_pm = meridiem.startswith("p")
        if is_pm and hour < 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
    elif hour > 23:
        raise InvalidTimeFormatError(f"Hour out of range in {label!r}")

    return hour * 60 + minute


def format_time(minutes: int, twelve_hour: bool = True) -> str:
    """Render minutes since midnight as "9:30 AM" or, with twelve_hour=False, "09:30"."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTimeFormatError(f"Minutes out of range: {minutes}")
    hour, minute = divmod(minutes, 60)
    if not twelve_hour:
        return f"{hour:02d}:{minute:02d}"
    display_hour = hour % 12 or 12
    suffix = "PM" if hour >= 12 else "AM"
    return f"{display_hour}:{minute:02d} {suffix}"


def slots_overlap(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """True iff [start_a, start_a+duration_a) and [start_b, start_b+duration_b) intersect."""
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def generate_time_slots(start_hour: int = 8, end_hour: int = 20, interval: int = 30) -> list[str]:
    """Generate the 12-hour slot labels between start_hour (inclusive) and end_hour (exclusive)."""
    if interval < 1:
        raise ValueError(f"interval must be >= 1, got {interval}")
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError(f"Invalid window {start_hour}-{end_hour}")
    return [
        format_time(m) for m in range(start_hour * 60, end_hour * 60, interval)
    ]


def parse_date(value: Union[str, date, datetime]) -> date:
    """Coerce an ISO string, date, or datetime to a calendar date.

    Raises:
        InvalidDateFormatError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) > 10 and text[10] in "T ":
                return datetime.fromisoformat(text).date()
            return date.fromisoformat(text)
        except ValueError:
            pass
    raise InvalidDateFormatError(f"Unrecognised date: {value!r}")


def weekday_of(day: date) -> Weekday:
    """Sunday-first weekday of a date."""
    return Weekday((day.weekday() + 1) % 7)


def minutes_of(moment: datetime) -> int:
    """Minutes since midnight of a datetime, at minute granularity."""
    return moment.hour * 60 + moment.minute


def date_range(start: date, days: int) -> list[date]:
    """Consecutive dates starting at ``start``."""
    return [start + timedelta(days=offset) for offset in range(days)]

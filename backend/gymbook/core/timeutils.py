"""
Wall-clock time helpers.

All times are local and naive. "HH:MM" strings only exist at the API and
storage boundary; internally a time of day is an int of minutes since
midnight, so "9:00" and "09:00" compare equal.

Day of week follows the storage convention: 0 = Sunday ... 6 = Saturday.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple

from gymbook.core.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def now() -> datetime:
    """Current local wall-clock time, truncated to the second."""
    return datetime.now().replace(microsecond=0)


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight. "24:00" is accepted as end of day."""
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", code="invalid_time")
    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes > 59 or total > MINUTES_PER_DAY:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", code="invalid_time")
    return total


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_of(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def at_minutes(day: date, minutes: int) -> datetime:
    """Datetime for `day` at `minutes` past midnight (1440 rolls over to the next day)."""
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


def day_of_week(day: date) -> int:
    """0 = Sunday, matching the stored `day_of_week` columns."""
    return (day.weekday() + 1) % 7


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def iter_days(start: date, end: date) -> Iterator[Tuple[date, int]]:
    """Yield `(day, day_of_week)` for every day in [start, end]."""
    current = start
    while current <= end:
        yield current, day_of_week(current)
        current += timedelta(days=1)


def first_weekday_on_or_after(start: date, weekday: int) -> date:
    return start + timedelta(days=(weekday - day_of_week(start)) % 7)


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp to the last valid day of the target month
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, min(day.day, candidate))
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {day}")


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap: [a_start, a_end) intersects [b_start, b_end)."""
    return a_start < b_end and b_start < a_end

"""
Recurrence helpers shared by the two generation paths.

`expand_weekdays` drives ad-hoc coach batches (several weekdays, fixed
time of day); `recurring_booking_dates` drives the materializer (one
weekday per recurring booking). Both yield dates lazily and in order.

Availability checks work on minutes since midnight, never on "HH:MM"
strings, so "9:00" and "09:00" compare equal.
"""

import heapq
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional, Sequence

from gymbook.core.exceptions import ValidationError
from gymbook.core.timeutils import (
    MINUTES_PER_DAY,
    first_weekday_on_or_after,
    minutes_of,
    parse_hhmm,
    start_of_day,
)
from gymbook.models.availability import AvailabilityAddition, BlockedSlot, WeeklyAvailability
from gymbook.models.recurring_booking import RecurringBooking


class AvailabilityPolicy:
    """Whether a generation path checks occurrences against the coach's availability."""

    TRUST = "trust"  # the coach asked for these times explicitly
    ENFORCE = "enforce"  # skip occurrences outside template/additions or inside blocks

    ALL = (TRUST, ENFORCE)


def _every_n_weeks(first: date, end: date, frequency: int) -> Iterator[date]:
    step = timedelta(days=7 * frequency)
    current = first
    while current <= end:
        yield current
        current += step


def expand_weekdays(
    weekdays: Iterable[int],
    start_date: date,
    end_date: date,
    frequency: int = 1,
) -> Iterator[date]:
    """
    Dates in [start_date, end_date] falling on any of `weekdays` (0 = Sunday),
    every `frequency` weeks counted from each weekday's first occurrence.
    """
    weekdays = sorted(set(weekdays))
    if not weekdays:
        raise ValidationError("Select at least one day of the week", code="no_weekday")
    if frequency < 1:
        raise ValidationError("Frequency must be at least one week", code="invalid_frequency")
    for weekday in weekdays:
        if not 0 <= weekday <= 6:
            raise ValidationError(f"Invalid day of week {weekday}", code="invalid_day_of_week")

    streams = [
        _every_n_weeks(first_weekday_on_or_after(start_date, weekday), end_date, frequency)
        for weekday in weekdays
    ]
    return heapq.merge(*streams)


def recurring_booking_dates(
    booking: RecurringBooking,
    window_start: date,
    window_end: date,
) -> Iterator[date]:
    """
    Occurrence dates of a recurring booking inside [window_start, window_end].

    The cadence is anchored on the first matching weekday on/after the
    booking's start date, so a fortnightly booking keeps its rhythm no
    matter when the generator runs.
    """
    last = window_end if booking.end_date is None else min(window_end, booking.end_date)
    anchor = first_weekday_on_or_after(booking.start_date, booking.day_of_week)
    for day in _every_n_weeks(anchor, last, booking.frequency or 1):
        if day >= window_start:
            yield day


def template_allows(
    templates: Sequence[WeeklyAvailability],
    day_of_week: int,
    start_minutes: int,
    end_minutes: int,
    individual_only: bool = False,
) -> bool:
    """True when one template row of that weekday contains [start, end] entirely."""
    for row in templates:
        if row.day_of_week != day_of_week:
            continue
        if individual_only and not row.is_individual:
            continue
        if parse_hhmm(row.start_time) <= start_minutes and end_minutes <= parse_hhmm(row.end_time):
            return True
    return False


def addition_covers(
    additions: Iterable[AvailabilityAddition],
    start: datetime,
    end: datetime,
) -> Optional[AvailabilityAddition]:
    for addition in additions:
        if addition.start_time <= start and end <= addition.end_time:
            return addition
    return None


def overlapping_block(
    blocks: Iterable[BlockedSlot],
    start: datetime,
    end: datetime,
) -> Optional[BlockedSlot]:
    for block in blocks:
        if block.start_time < end and start < block.end_time:
            return block
    return None


def interval_allowed(
    templates: Sequence[WeeklyAvailability],
    additions: Iterable[AvailabilityAddition],
    start: datetime,
    end: datetime,
    day_of_week: int,
) -> bool:
    """Allowed by the weekly template (within one calendar day) or by an addition."""
    end_minutes = int((end - start_of_day(start.date())).total_seconds() // 60)
    if end_minutes <= MINUTES_PER_DAY and template_allows(
        templates, day_of_week, minutes_of(start), end_minutes
    ):
        return True
    return addition_covers(additions, start, end) is not None

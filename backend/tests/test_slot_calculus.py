"""
Tests for the time-slot calculus: templates, additions, blocks and
sessions projected onto a calendar day. Pure, no database.
"""

from datetime import date, datetime

from gymbook.models.availability import AvailabilityAddition, BlockedSlot, WeeklyAvailability
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.services.slot_calculus import (
    BlockedSlotView,
    BookedSlot,
    ExceptionalSlot,
    FreeSlot,
    TimeIndex,
    compute_calendar,
    compute_day_slots,
)

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def at(day: date, hhmm: str) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hours), int(minutes))


def template(start="09:00", end="12:00", day_of_week=1, duration=None, room_id=3):
    return WeeklyAvailability(
        id=1,
        coach_id=1,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        duration=duration,
        is_individual=True,
        is_group=False,
        room_id=room_id,
    )


def block(start: datetime, end: datetime, block_id=10):
    return BlockedSlot(id=block_id, coach_id=1, start_time=start, end_time=end, reason="Dentist")


def session(start: datetime, end: datetime, status=SessionStatus.SCHEDULED, recurring_booking_id=None):
    return TrainingSession(
        id=20,
        coach_id=1,
        room_id=4,
        type=SessionType.ONE_TO_ONE,
        capacity=1,
        booked_count=1,
        start_time=start,
        end_time=end,
        status=status,
        recurring_booking_id=recurring_booking_id,
    )


def describe(slots):
    return [(s.start_time.strftime("%H:%M"), s.end_time.strftime("%H:%M"), s.status) for s in slots]


def test_template_cut_into_default_duration():
    slots = compute_day_slots(MONDAY, [template()])

    assert describe(slots) == [
        ("09:00", "10:00", "FREE"),
        ("10:00", "11:00", "FREE"),
        ("11:00", "12:00", "FREE"),
    ]
    assert all(isinstance(s, FreeSlot) for s in slots)
    assert all(s.is_individual and not s.is_group and s.room_id == 3 for s in slots)
    assert [s.duration for s in slots] == [60, 60, 60]


def test_template_other_weekday_yields_nothing():
    assert compute_day_slots(TUESDAY, [template()]) == []


def test_row_duration_overrides_default_and_last_slot_is_clipped():
    slots = compute_day_slots(MONDAY, [template("09:00", "10:15", duration=30)], default_duration=60)

    assert describe(slots) == [
        ("09:00", "09:30", "FREE"),
        ("09:30", "10:00", "FREE"),
        ("10:00", "10:15", "FREE"),
    ]


def test_block_marks_every_overlapping_slot():
    """A 10:30-11:30 block touches both the 10:00 and 11:00 slots."""
    slots = compute_day_slots(
        MONDAY, [template()], blocks=[block(at(MONDAY, "10:30"), at(MONDAY, "11:30"))]
    )

    assert describe(slots) == [
        ("09:00", "10:00", "FREE"),
        ("10:00", "11:00", "BLOCKED"),
        ("11:00", "12:00", "BLOCKED"),
    ]
    assert slots[1].block.id == 10


def test_block_ending_at_slot_start_does_not_overlap():
    slots = compute_day_slots(
        MONDAY, [template()], blocks=[block(at(MONDAY, "08:00"), at(MONDAY, "09:00"))]
    )

    assert [s.status for s in slots if s.start_time >= at(MONDAY, "09:00")] == ["FREE"] * 3


def test_live_session_books_slot_and_cancelled_one_is_ignored():
    slots = compute_day_slots(
        MONDAY,
        [template()],
        sessions=[
            session(at(MONDAY, "10:00"), at(MONDAY, "11:00"), recurring_booking_id=7),
            session(at(MONDAY, "11:00"), at(MONDAY, "12:00"), status=SessionStatus.CANCELLED),
        ],
    )

    assert [s.status for s in slots] == ["FREE", "BOOKED", "FREE"]
    booked = slots[1]
    assert isinstance(booked, BookedSlot)
    assert booked.room_id == 4
    assert booked.is_recurring_source is True


def test_session_wins_over_block():
    slots = compute_day_slots(
        MONDAY,
        [template()],
        blocks=[block(at(MONDAY, "10:00"), at(MONDAY, "11:00"))],
        sessions=[session(at(MONDAY, "10:00"), at(MONDAY, "11:00"))],
    )

    assert slots[1].status == "BOOKED"


def test_addition_outside_template_is_exceptional():
    addition = AvailabilityAddition(
        id=5,
        coach_id=1,
        start_time=at(MONDAY, "14:00"),
        end_time=at(MONDAY, "15:00"),
        is_individual=True,
        is_group=False,
    )
    slots = compute_day_slots(MONDAY, [template()], additions=[addition])

    assert describe(slots)[-1] == ("14:00", "15:00", "EXCEPTIONAL")
    assert isinstance(slots[-1], ExceptionalSlot)
    assert slots[-1].is_exception
    assert slots[-1].addition is addition


def test_addition_replaces_template_slot_at_same_start():
    addition = AvailabilityAddition(
        id=5,
        coach_id=1,
        start_time=at(MONDAY, "09:00"),
        end_time=at(MONDAY, "10:00"),
        is_individual=False,
        is_group=True,
    )
    slots = compute_day_slots(MONDAY, [template()], additions=[addition])

    assert len(slots) == 3
    assert slots[0].status == "EXCEPTIONAL"
    assert slots[0].is_group and not slots[0].is_individual


def test_standalone_block_is_shown_in_hour_chunks():
    slots = compute_day_slots(
        TUESDAY, [template()], blocks=[block(at(TUESDAY, "15:00"), at(TUESDAY, "16:30"))]
    )

    assert describe(slots) == [
        ("15:00", "16:00", "BLOCKED"),
        ("16:00", "16:30", "BLOCKED"),
    ]
    assert all(isinstance(s, BlockedSlotView) for s in slots)


def test_block_straddling_window_start_keeps_uncovered_part():
    """08:30-09:30 over a 09:00 window: 08:30-09:00 is shown on its own."""
    slots = compute_day_slots(
        MONDAY, [template()], blocks=[block(at(MONDAY, "08:30"), at(MONDAY, "09:30"))]
    )

    assert describe(slots) == [
        ("08:30", "09:00", "BLOCKED"),
        ("09:00", "10:00", "BLOCKED"),
        ("10:00", "11:00", "FREE"),
        ("11:00", "12:00", "FREE"),
    ]
    assert isinstance(slots[0], BlockedSlotView)
    assert slots[0].block.id == 10


def test_block_covering_whole_window_is_split_around_it():
    slots = compute_day_slots(
        MONDAY, [template("10:00", "11:00")], blocks=[block(at(MONDAY, "08:00"), at(MONDAY, "12:30"))]
    )

    assert describe(slots) == [
        ("08:00", "09:00", "BLOCKED"),
        ("09:00", "10:00", "BLOCKED"),
        ("10:00", "11:00", "BLOCKED"),
        ("11:00", "12:00", "BLOCKED"),
        ("12:00", "12:30", "BLOCKED"),
    ]


def test_block_spanning_midnight_appears_on_both_days():
    overnight = block(at(MONDAY, "23:00"), at(TUESDAY, "01:00"))
    calendar = compute_calendar(MONDAY, TUESDAY, [], blocks=[overnight])

    assert describe(calendar[MONDAY]) == [("23:00", "00:00", "BLOCKED")]
    assert describe(calendar[TUESDAY]) == [("00:00", "01:00", "BLOCKED")]


def test_calendar_covers_every_day_in_range():
    calendar = compute_calendar(date(2030, 1, 6), date(2030, 1, 12), [template()])

    assert list(calendar) == [date(2030, 1, d) for d in range(6, 13)]
    assert len(calendar[MONDAY]) == 3
    assert sum(len(v) for v in calendar.values()) == 3


def test_hhmm_without_leading_zero():
    slots = compute_day_slots(MONDAY, [template("9:00", "10:00")])

    assert describe(slots) == [("09:00", "10:00", "FREE")]


def test_time_index_returns_earliest_overlap():
    late = block(at(MONDAY, "10:30"), at(MONDAY, "12:00"), block_id=2)
    early = block(at(MONDAY, "09:45"), at(MONDAY, "10:15"), block_id=1)
    index = TimeIndex([late, early], bucket_minutes=15)

    assert index.find(at(MONDAY, "10:00"), at(MONDAY, "11:00")) is early
    assert index.find(at(MONDAY, "10:15"), at(MONDAY, "10:30")) is None
    assert index.find(at(MONDAY, "11:00"), at(MONDAY, "11:05")) is late

"""
Tests for the recurring session materializer and the completion sweep.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import NOW
from gymbook.models.availability import BlockedSlot
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.recurring_booking import RecurringBooking, RecurringBookingStatus
from gymbook.models.training_session import SessionStatus, TrainingSession
from gymbook.models.user import Role, User
from gymbook.services.session_generator import (
    generate_all_sessions,
    generate_sessions_from_template,
    mark_past_sessions_completed,
)
from gymbook.services.session_service import cancel_session


async def _sessions(db, recurring_booking_id):
    result = await db.execute(
        select(TrainingSession)
        .where(TrainingSession.recurring_booking_id == recurring_booking_id)
        .order_by(TrainingSession.start_time)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_generates_one_session_per_week(db_session, weekly_booking, room):
    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    sessions = await _sessions(db_session, weekly_booking.id)
    assert result.from_recurring_bookings == 4
    assert result.total_generated == 4
    assert result.skipped == []
    assert [s.start_time for s in sessions] == [
        datetime(2030, 1, day, 10, 0) for day in (7, 14, 21, 28)
    ]
    for s in sessions:
        assert s.end_time - s.start_time == timedelta(hours=1)
        assert s.room_id == room.id
        assert s.member_id == weekly_booking.member_id
        assert s.booked_count == 1
        assert s.is_recurring

    bookings = (
        await db_session.execute(select(Booking).where(Booking.member_id == weekly_booking.member_id))
    ).scalars().all()
    assert len(bookings) == 4
    assert {b.status for b in bookings} == {BookingStatus.CONFIRMED}


@pytest.mark.asyncio
async def test_generation_is_idempotent(db_session, weekly_booking):
    first = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)
    second = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert first.total_generated == 4
    assert second.total_generated == 0
    assert len(await _sessions(db_session, weekly_booking.id)) == 4


@pytest.mark.asyncio
async def test_cancelled_occurrence_is_not_recreated(db_session, weekly_booking):
    await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)
    sessions = await _sessions(db_session, weekly_booking.id)
    await cancel_session(db_session, sessions[1].id, now=NOW)

    again = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert again.total_generated == 0
    statuses = [s.status for s in await _sessions(db_session, weekly_booking.id)]
    assert statuses.count(SessionStatus.CANCELLED) == 1


@pytest.mark.asyncio
async def test_blocked_week_is_skipped(db_session, weekly_booking, coach):
    db_session.add(
        BlockedSlot(
            coach_id=coach.id,
            start_time=datetime(2030, 1, 14, 0, 0),
            end_time=datetime(2030, 1, 15, 0, 0),
            reason="Holiday",
        )
    )
    await db_session.commit()

    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert result.total_generated == 3
    starts = [s.start_time.day for s in await _sessions(db_session, weekly_booking.id)]
    assert 14 not in starts


@pytest.mark.asyncio
async def test_existing_session_of_coach_is_respected(db_session, weekly_booking, coach, room):
    db_session.add(
        TrainingSession(
            coach_id=coach.id,
            room_id=room.id,
            start_time=datetime(2030, 1, 21, 10, 0),
            end_time=datetime(2030, 1, 21, 11, 0),
            status=SessionStatus.SCHEDULED,
        )
    )
    await db_session.commit()

    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert result.total_generated == 3


@pytest.mark.asyncio
async def test_coach_without_default_room_is_skipped(db_session, weekly_booking, member):
    roomless = User(
        email="roomless@example.com", name="No Room", role=Role.COACH, hashed_password="x"
    )
    db_session.add(roomless)
    await db_session.commit()
    stranded = RecurringBooking(
        coach_id=roomless.id,
        member_id=member.id,
        day_of_week=3,
        start_time="10:00",
        end_time="11:00",
        start_date=NOW.date(),
        frequency=1,
        status=RecurringBookingStatus.ACTIVE,
    )
    db_session.add(stranded)
    await db_session.commit()

    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert result.from_recurring_bookings == 4
    assert len(result.skipped) == 1
    skip = result.skipped[0]
    assert skip.recurring_booking_id == stranded.id
    assert skip.coach_id == roomless.id
    assert skip.code == "no_default_room"


@pytest.mark.asyncio
async def test_cancelled_recurring_booking_is_ignored(db_session, weekly_booking):
    weekly_booking.status = RecurringBookingStatus.CANCELLED
    await db_session.commit()

    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert result.total_generated == 0


@pytest.mark.asyncio
async def test_slot_outside_template_is_skipped(db_session, weekly_booking):
    weekly_booking.start_time = "12:00"
    weekly_booking.end_time = "13:00"
    await db_session.commit()

    result = await generate_all_sessions(db_session, weeks_ahead=4, now=NOW)

    assert result.total_generated == 0


@pytest.mark.asyncio
async def test_mark_past_sessions_completed_is_idempotent(db_session, coach, room):
    past = TrainingSession(
        coach_id=coach.id,
        room_id=room.id,
        start_time=NOW - timedelta(hours=3),
        end_time=NOW - timedelta(hours=2),
        status=SessionStatus.SCHEDULED,
    )
    running = TrainingSession(
        coach_id=coach.id,
        room_id=room.id,
        start_time=NOW - timedelta(minutes=30),
        end_time=NOW + timedelta(minutes=30),
        status=SessionStatus.SCHEDULED,
    )
    db_session.add_all([past, running])
    await db_session.commit()

    assert await mark_past_sessions_completed(db_session, NOW) == 1
    assert await mark_past_sessions_completed(db_session, NOW) == 0

    await db_session.refresh(past)
    await db_session.refresh(running)
    assert past.status == SessionStatus.COMPLETED
    assert running.status == SessionStatus.SCHEDULED


@pytest.mark.asyncio
async def test_template_sessions_fill_every_window(db_session, coach, coach_settings, monday_template):
    created = await generate_sessions_from_template(db_session, coach.id, weeks_ahead=2, now=NOW)

    assert created == 2
    again = await generate_sessions_from_template(db_session, coach.id, weeks_ahead=2, now=NOW)
    assert again == 0

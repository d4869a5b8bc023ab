"""
Service-level tests for coach availability management: additions that book
a member straight away, and the failures that must leave nothing behind.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import NOW
from gymbook.core.exceptions import ConfigurationError, NotFoundError
from gymbook.models.availability import AvailabilityAddition
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.training_session import TrainingSession
from gymbook.schemas.availability import AdditionCreate
from gymbook.services import availability_service

START = datetime(2030, 1, 9, 15, 0)


def _addition(member_id=None):
    return AdditionCreate(
        start_time=START,
        end_time=START + timedelta(hours=1),
        reason="Extra session",
        member_id=member_id,
    )


async def _additions(db, coach_id):
    result = await db.execute(
        select(AvailabilityAddition).where(AvailabilityAddition.coach_id == coach_id)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_addition_for_member_books_them(db_session, coach, member, coach_settings):
    addition = await availability_service.create_addition(
        db_session, coach.id, _addition(member.id), now=NOW
    )

    session = (
        await db_session.execute(
            select(TrainingSession).where(TrainingSession.start_time == START)
        )
    ).scalar_one()
    assert session.member_id == member.id
    assert session.room_id == coach_settings.default_room_id
    booking = (
        await db_session.execute(select(Booking).where(Booking.session_id == session.id))
    ).scalar_one()
    assert booking.status == BookingStatus.CONFIRMED
    assert addition.id is not None


@pytest.mark.asyncio
async def test_addition_for_member_without_default_room_leaves_nothing_pending(
    db_session, coach, member
):
    with pytest.raises(ConfigurationError):
        await availability_service.create_addition(
            db_session, coach.id, _addition(member.id), now=NOW
        )

    assert not db_session.new
    assert await _additions(db_session, coach.id) == []


@pytest.mark.asyncio
async def test_addition_for_unknown_member_leaves_nothing_pending(db_session, coach, coach_settings):
    with pytest.raises(NotFoundError) as exc:
        await availability_service.create_addition(
            db_session, coach.id, _addition(member_id=9999), now=NOW
        )

    assert exc.value.code == "member_not_found"
    assert not db_session.new
    assert await _additions(db_session, coach.id) == []

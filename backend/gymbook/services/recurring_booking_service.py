"""
Recurring bookings: a member's standing weekly slot with a coach.

    ACTIVE -> CANCELLED   (future-only: sessions already held stay as they are)

Creating one validates the slot against the coach's individual template
for that weekday and against other ACTIVE recurring bookings, then
materializes the first weeks right away so the member sees them at once.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import get_settings
from gymbook.core.exceptions import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gymbook.core.logging import get_logger
from gymbook.core import timeutils
from gymbook.models.recurring_booking import RecurringBooking, RecurringBookingStatus
from gymbook.models.training_session import SessionStatus, TrainingSession
from gymbook.models.user import Role, User
from gymbook.schemas.recurring_booking import RecurringBookingCreate
from gymbook.services import availability_service
from gymbook.services.recurrence import template_allows
from gymbook.services.session_generator import generate_sessions_for_recurring_booking
from gymbook.services.session_service import cancel_session_in_transaction

logger = get_logger(__name__)
settings = get_settings()


async def _resolve_member(db: AsyncSession, user: User, member_id: Optional[int]) -> int:
    if member_id is None or member_id == user.id:
        return user.id
    if not user.can_coach:
        raise ForbiddenError("Only coaches can book for other members", code="not_allowed_for_member")
    member = await db.get(User, member_id)
    if member is None or not member.is_active or member.role != Role.MEMBER:
        raise NotFoundError(f"Member {member_id} not found", code="member_not_found")
    return member.id


async def _find_overlapping(
    db: AsyncSession,
    coach_id: int,
    day_of_week: int,
    start_minutes: int,
    end_minutes: int,
) -> Optional[RecurringBooking]:
    result = await db.execute(
        select(RecurringBooking).where(
            RecurringBooking.coach_id == coach_id,
            RecurringBooking.day_of_week == day_of_week,
            RecurringBooking.status == RecurringBookingStatus.ACTIVE,
        )
    )
    for other in result.scalars().all():
        if (
            timeutils.parse_hhmm(other.start_time) < end_minutes
            and start_minutes < timeutils.parse_hhmm(other.end_time)
        ):
            return other
    return None


async def create_recurring_booking(
    db: AsyncSession,
    user: User,
    data: RecurringBookingCreate,
    weeks_ahead: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[RecurringBooking, int]:
    """
    Create an ACTIVE recurring booking and generate its first sessions.
    Returns the booking and the number of sessions generated.
    """
    now = now or timeutils.now()
    weeks_ahead = weeks_ahead if weeks_ahead is not None else settings.GENERATION_WEEKS_AHEAD

    start_minutes = timeutils.parse_hhmm(data.start_time)
    end_minutes = timeutils.parse_hhmm(data.end_time)
    if end_minutes <= start_minutes:
        raise ValidationError(
            f"End time {data.end_time} must be after start time {data.start_time}",
            code="invalid_range",
        )
    start_date = data.start_date or now.date()
    if data.end_date is not None and data.end_date < start_date:
        raise ValidationError("End date must not be before start date", code="invalid_range")

    member_id = await _resolve_member(db, user, data.member_id)
    coach = await availability_service.get_coach(db, data.coach_id)

    templates = await availability_service.get_weekly_availability(
        db, coach.id, day_of_week=data.day_of_week
    )
    if not template_allows(
        templates, data.day_of_week, start_minutes, end_minutes, individual_only=True
    ):
        raise ValidationError(
            "This time slot is not available in the coach's weekly schedule",
            code="outside_availability",
        )

    clash = await _find_overlapping(db, coach.id, data.day_of_week, start_minutes, end_minutes)
    if clash is not None:
        raise ConflictError(
            "This time slot conflicts with an existing recurring booking",
            code="recurring_booking_conflict",
            details={"recurring_booking_id": clash.id},
        )

    booking = RecurringBooking(
        coach_id=coach.id,
        member_id=member_id,
        day_of_week=data.day_of_week,
        start_time=timeutils.format_hhmm(start_minutes),
        end_time=timeutils.format_hhmm(end_minutes),
        start_date=start_date,
        end_date=data.end_date,
        frequency=data.frequency,
        status=RecurringBookingStatus.ACTIVE,
    )
    db.add(booking)
    await db.commit()

    logger.info(
        "recurring_booking_created",
        recurring_booking_id=booking.id,
        coach_id=coach.id,
        member_id=member_id,
        day_of_week=booking.day_of_week,
        start_time=booking.start_time,
        end_time=booking.end_time,
    )

    generated = 0
    try:
        generated = await generate_sessions_for_recurring_booking(
            db,
            booking,
            max(now.date(), start_date),
            now.date() + timedelta(weeks=weeks_ahead),
            now,
        )
    except ConfigurationError:
        # The booking stands; the scheduled run picks it up once a room is set
        logger.warning(
            "initial_generation_skipped_no_default_room",
            recurring_booking_id=booking.id,
            coach_id=coach.id,
        )
    return booking, generated


async def get_recurring_booking(db: AsyncSession, recurring_booking_id: int) -> RecurringBooking:
    booking = await db.get(RecurringBooking, recurring_booking_id)
    if booking is None:
        raise NotFoundError(
            f"Recurring booking {recurring_booking_id} not found",
            code="recurring_booking_not_found",
        )
    return booking


async def cancel_recurring_booking(
    db: AsyncSession,
    recurring_booking_id: int,
    user: User,
    future_only: bool = True,
    now: Optional[datetime] = None,
) -> Tuple[RecurringBooking, int]:
    """
    Cancel a recurring booking and every generated session that has not
    started yet (their bookings become CANCELLED_BY_COACH). Sessions in the
    past keep their status. Returns the booking and the sessions cancelled.
    """
    if not future_only:
        raise ValidationError(
            "Only future occurrences can be cancelled",
            code="future_only_required",
        )
    now = now or timeutils.now()

    booking = await get_recurring_booking(db, recurring_booking_id)
    if booking.member_id != user.id and not user.manages(booking.coach_id):
        raise ForbiddenError("You cannot cancel this recurring booking", code="not_booking_owner")
    if booking.status != RecurringBookingStatus.ACTIVE:
        raise InvalidTransitionError(
            "Recurring booking is already cancelled",
            code="invalid_recurring_transition",
            details={"from": booking.status, "to": RecurringBookingStatus.CANCELLED},
        )

    booking.status = RecurringBookingStatus.CANCELLED
    booking.cancelled_at = now

    result = await db.execute(
        select(TrainingSession).where(
            TrainingSession.recurring_booking_id == booking.id,
            TrainingSession.status == SessionStatus.SCHEDULED,
            TrainingSession.start_time >= now,
        )
    )
    sessions = list(result.scalars().all())
    for session in sessions:
        await cancel_session_in_transaction(db, session, now)
    await db.commit()

    logger.info(
        "recurring_booking_cancelled",
        recurring_booking_id=booking.id,
        member_id=booking.member_id,
        sessions_cancelled=len(sessions),
    )
    return booking, len(sessions)


async def list_recurring_bookings(db: AsyncSession, user: User) -> List[RecurringBooking]:
    """Recurring bookings the user holds, plus those they coach."""
    query = select(RecurringBooking)
    if user.role != Role.OWNER:
        query = query.where(
            or_(RecurringBooking.member_id == user.id, RecurringBooking.coach_id == user.id)
        )
    result = await db.execute(query.order_by(RecurringBooking.day_of_week, RecurringBooking.start_time))
    return list(result.scalars().all())

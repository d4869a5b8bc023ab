"""
Training session lifecycle: creation, ad-hoc recurring batches and the
coach-side transitions (cancel, complete, no-show, reschedule).

Cancelling a session cascades to its confirmed bookings
(CANCELLED_BY_COACH) and releases every seat in the same transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from gymbook.core.config import get_settings
from gymbook.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from gymbook.core.logging import get_logger
from gymbook.core.metrics import record_generated
from gymbook.core import timeutils
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import User
from gymbook.schemas.session import RecurringSessionsCreate, SessionCreate
from gymbook.services import availability_service
from gymbook.services.recurrence import (
    AvailabilityPolicy,
    expand_weekdays,
    interval_allowed,
    overlapping_block,
)
from gymbook.services.state_machine import (
    apply_booking_transition,
    apply_session_transition,
    check_session_transition,
)

logger = get_logger(__name__)
settings = get_settings()


async def get_sessions(
    db: AsyncSession,
    coach_id: Optional[int],
    start: datetime,
    end: datetime,
    exclude_status: Optional[str] = None,
    member_id: Optional[int] = None,
) -> List[TrainingSession]:
    """Sessions starting in [start, end], optionally narrowed to a coach or member."""
    query = select(TrainingSession).where(
        TrainingSession.start_time >= start,
        TrainingSession.start_time <= end,
    )
    if coach_id is not None:
        query = query.where(TrainingSession.coach_id == coach_id)
    if member_id is not None:
        booked = select(Booking.session_id).where(
            Booking.member_id == member_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        query = query.where(TrainingSession.id.in_(booked))
    if exclude_status is not None:
        query = query.where(TrainingSession.status != exclude_status)
    result = await db.execute(query.order_by(TrainingSession.start_time))
    return list(result.scalars().all())


async def get_session(db: AsyncSession, session_id: int) -> TrainingSession:
    session = await db.get(TrainingSession, session_id)
    if session is None:
        raise NotFoundError(f"Session {session_id} not found", code="session_not_found")
    return session


async def get_managed_session(db: AsyncSession, session_id: int, user: User) -> TrainingSession:
    session = await get_session(db, session_id)
    if not user.manages(session.coach_id):
        raise ForbiddenError("You do not manage this session", code="not_session_coach")
    return session


async def live_session_at(
    db: AsyncSession,
    coach_id: int,
    start_time: datetime,
) -> Optional[TrainingSession]:
    result = await db.execute(
        select(TrainingSession).where(
            TrainingSession.coach_id == coach_id,
            TrainingSession.start_time == start_time,
            TrainingSession.status != SessionStatus.CANCELLED,
        )
    )
    return result.scalars().first()


def _capacity_for(session_type: str, capacity: int) -> int:
    return 1 if session_type == SessionType.ONE_TO_ONE else capacity


async def create_session(
    db: AsyncSession,
    coach_id: int,
    data: SessionCreate,
    now: Optional[datetime] = None,
) -> TrainingSession:
    """
    Create a one-off session. Raises ConflictError when the coach already
    has a live session starting at the same instant.
    """
    now = now or timeutils.now()
    if data.end_time <= data.start_time:
        raise ValidationError("End time must be after start time", code="invalid_range")
    if data.start_time < now:
        raise ValidationError("Cannot create a session in the past", code="in_the_past")

    room_id = data.room_id or await availability_service.require_default_room_id(db, coach_id)
    if await live_session_at(db, coach_id, data.start_time) is not None:
        raise ConflictError("A session already exists at this time", code="session_exists")

    member = None
    if data.member_id is not None:
        member = await db.get(User, data.member_id)
        if member is None or not member.is_active:
            raise NotFoundError(f"Member {data.member_id} not found", code="member_not_found")

    session = TrainingSession(
        coach_id=coach_id,
        room_id=room_id,
        member_id=data.member_id,
        title=data.title,
        description=data.description,
        type=data.type,
        capacity=_capacity_for(data.type, data.capacity),
        booked_count=1 if member is not None else 0,
        start_time=data.start_time,
        end_time=data.end_time,
        status=SessionStatus.SCHEDULED,
    )
    db.add(session)
    try:
        await db.flush()
        if member is not None:
            db.add(Booking(session_id=session.id, member_id=member.id, status=BookingStatus.CONFIRMED))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A session already exists at this time", code="session_exists")

    logger.info(
        "session_created",
        session_id=session.id,
        coach_id=coach_id,
        start_time=session.start_time,
        type=session.type,
        capacity=session.capacity,
    )
    return session


@dataclass
class RecurringSessionsResult:
    created: List[TrainingSession] = field(default_factory=list)
    skipped: List[Tuple[datetime, str]] = field(default_factory=list)


async def create_recurring_sessions(
    db: AsyncSession,
    coach_id: int,
    data: RecurringSessionsCreate,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RecurringSessionsResult:
    """
    Ad-hoc batch: one session per selected weekday between the start and
    end dates, every `frequency` weeks, at a fixed time of day.

    With AvailabilityPolicy.TRUST (default) only past and already-taken
    starts are skipped. AvailabilityPolicy.ENFORCE also skips occurrences
    that overlap a block or fall outside the template and additions.
    """
    now = now or timeutils.now()
    policy = policy or data.policy or AvailabilityPolicy.TRUST
    if policy not in AvailabilityPolicy.ALL:
        raise ValidationError(f"Unknown availability policy '{policy}'", code="invalid_policy")

    end_date = data.end_date or timeutils.add_months(
        data.start_date, settings.RECURRING_SESSION_DEFAULT_MONTHS
    )
    if end_date < data.start_date:
        raise ValidationError("End date must not be before start date", code="invalid_range")

    start_minutes = timeutils.parse_hhmm(data.start_time)
    dates = expand_weekdays(data.weekdays, data.start_date, end_date, data.frequency)
    room_id = data.room_id or await availability_service.require_default_room_id(db, coach_id)

    window_start = timeutils.start_of_day(data.start_date)
    window_end = timeutils.start_of_day(end_date) + timedelta(days=2)
    existing = await get_sessions(
        db, coach_id, window_start, window_end, exclude_status=SessionStatus.CANCELLED
    )
    taken = {s.start_time for s in existing}

    templates, additions, blocks = [], [], []
    if policy == AvailabilityPolicy.ENFORCE:
        templates = await availability_service.get_weekly_availability(db, coach_id)
        additions = await availability_service.get_availability_additions(
            db, coach_id, window_start, window_end
        )
        blocks = await availability_service.get_blocked_slots(db, coach_id, window_start, window_end)

    result = RecurringSessionsResult()
    for day in dates:
        start = timeutils.at_minutes(day, start_minutes)
        end = start + timedelta(minutes=data.duration)
        if start <= now:
            result.skipped.append((start, "in_the_past"))
            continue
        if start in taken:
            result.skipped.append((start, "session_exists"))
            continue
        if policy == AvailabilityPolicy.ENFORCE:
            if overlapping_block(blocks, start, end) is not None:
                result.skipped.append((start, "blocked"))
                continue
            if not interval_allowed(templates, additions, start, end, timeutils.day_of_week(day)):
                result.skipped.append((start, "outside_availability"))
                continue

        session = TrainingSession(
            coach_id=coach_id,
            room_id=room_id,
            title=data.title,
            description=data.description,
            type=data.type,
            capacity=_capacity_for(data.type, data.capacity),
            booked_count=0,
            start_time=start,
            end_time=end,
            status=SessionStatus.SCHEDULED,
            is_recurring=True,
        )
        db.add(session)
        taken.add(start)
        result.created.append(session)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(
            "Another session was created at one of these times, nothing was saved",
            code="session_exists",
        )

    record_generated("coach_batch", len(result.created))
    logger.info(
        "recurring_sessions_created",
        coach_id=coach_id,
        created=len(result.created),
        skipped=len(result.skipped),
        policy=policy,
    )
    return result


async def _cancel_confirmed_bookings(
    db: AsyncSession,
    session: TrainingSession,
    now: datetime,
) -> int:
    result = await db.execute(
        select(Booking).where(
            Booking.session_id == session.id,
            Booking.status == BookingStatus.CONFIRMED,
        )
    )
    bookings = list(result.scalars().all())
    for booking in bookings:
        apply_booking_transition(booking, BookingStatus.CANCELLED_BY_COACH, session, now)
    return len(bookings)


async def cancel_session_in_transaction(
    db: AsyncSession,
    session: TrainingSession,
    now: datetime,
) -> int:
    """Cancel `session` and its bookings without committing. Returns bookings cancelled."""
    check_session_transition(session, SessionStatus.CANCELLED, now)
    cancelled = await _cancel_confirmed_bookings(db, session, now)
    await db.execute(
        update(TrainingSession)
        .where(TrainingSession.id == session.id)
        .values(
            status=SessionStatus.CANCELLED,
            booked_count=0,
            version=TrainingSession.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    # Keep the loaded instance in step without scheduling another UPDATE
    set_committed_value(session, "status", SessionStatus.CANCELLED)
    set_committed_value(session, "booked_count", 0)
    set_committed_value(session, "version", session.version + 1)
    return cancelled


async def cancel_session(
    db: AsyncSession,
    session_id: int,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> TrainingSession:
    now = now or timeutils.now()
    session = (
        await get_managed_session(db, session_id, user) if user else await get_session(db, session_id)
    )
    cancelled = await cancel_session_in_transaction(db, session, now)
    await db.commit()

    logger.info(
        "session_cancelled",
        session_id=session.id,
        coach_id=session.coach_id,
        bookings_cancelled=cancelled,
    )
    return session


async def complete_session(
    db: AsyncSession,
    session_id: int,
    user: Optional[User] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TrainingSession:
    """Mark attended. Notes from the coach are kept on the session."""
    now = now or timeutils.now()
    session = (
        await get_managed_session(db, session_id, user) if user else await get_session(db, session_id)
    )
    apply_session_transition(session, SessionStatus.COMPLETED, now)
    if notes is not None:
        session.notes = notes
    await db.commit()

    logger.info("session_completed", session_id=session.id, coach_id=session.coach_id)
    return session


async def mark_no_show(
    db: AsyncSession,
    session_id: int,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> TrainingSession:
    now = now or timeutils.now()
    session = (
        await get_managed_session(db, session_id, user) if user else await get_session(db, session_id)
    )
    apply_session_transition(session, SessionStatus.NO_SHOW, now)
    await db.commit()

    logger.info("session_no_show", session_id=session.id, coach_id=session.coach_id)
    return session


async def reschedule_session(
    db: AsyncSession,
    session_id: int,
    start_time: datetime,
    end_time: datetime,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> TrainingSession:
    """Move a scheduled session; its bookings follow it."""
    now = now or timeutils.now()
    if end_time <= start_time:
        raise ValidationError("End time must be after start time", code="invalid_range")
    if start_time < now:
        raise ValidationError("Cannot move a session into the past", code="in_the_past")

    session = (
        await get_managed_session(db, session_id, user) if user else await get_session(db, session_id)
    )
    if session.status != SessionStatus.SCHEDULED:
        raise ValidationError(
            f"Only scheduled sessions can be rescheduled (status: {session.status})",
            code="session_not_scheduled",
        )
    clash = await live_session_at(db, session.coach_id, start_time)
    if clash is not None and clash.id != session.id:
        raise ConflictError("A session already exists at this time", code="session_exists")

    previous_start = session.start_time
    session.start_time = start_time
    session.end_time = end_time
    session.version = session.version + 1
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A session already exists at this time", code="session_exists")

    logger.info(
        "session_rescheduled",
        session_id=session.id,
        coach_id=session.coach_id,
        previous_start=previous_start,
        start_time=start_time,
    )
    return session


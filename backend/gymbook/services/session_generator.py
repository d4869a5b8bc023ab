"""
Recurring session materializer.

GENERATION RUN
==============

`generate_all_sessions` is what the scheduled job calls:

  1. For every ACTIVE recurring booking, materialize its occurrences
     between today and the horizon (today + weeks_ahead weeks). Each
     booking is processed in its own transaction: a coach without a
     default room, or any other failure, is recorded in `skipped` and
     the run moves on.
  2. Optionally (GENERATE_TEMPLATE_SESSIONS) open one bookable session
     per weekly template row for every coach.
  3. Mark every scheduled session whose end time has passed as completed.

An occurrence is skipped when it:
  - starts in the past
  - already exists for this recurring booking (any status, so an
    occurrence the coach cancelled is not brought back)
  - collides with a live session of the coach at the same start
  - overlaps a block
  - is allowed by neither the weekly template nor an addition

Re-running is safe: the duplicate guard skips what already exists and
the partial unique index on (coach_id, start_time) rejects anything a
concurrent run inserted first.
"""

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import get_settings
from gymbook.core.exceptions import ConfigurationError, DomainError
from gymbook.core.logging import get_logger
from gymbook.core.metrics import (
    generation_duration,
    record_generated,
    record_generation_skip,
    sessions_completed,
)
from gymbook.core import timeutils
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.recurring_booking import RecurringBooking, RecurringBookingStatus
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import Role, User
from gymbook.services import availability_service
from gymbook.services.recurrence import (
    interval_allowed,
    overlapping_block,
    recurring_booking_dates,
)

logger = get_logger(__name__)
settings = get_settings()

RECURRING_SESSION_TITLE = "Individual session"
TEMPLATE_SESSION_TITLE = "Available"


@dataclass
class GenerationSkip:
    recurring_booking_id: int
    coach_id: int
    reason: str
    code: str


@dataclass
class GenerationResult:
    total_generated: int = 0
    from_recurring_bookings: int = 0
    from_availability_template: int = 0
    marked_completed: int = 0
    skipped: List[GenerationSkip] = field(default_factory=list)


async def generate_sessions_for_recurring_booking(
    db: AsyncSession,
    booking: RecurringBooking,
    window_start: date,
    horizon: date,
    now: datetime,
) -> int:
    """
    Materialize one recurring booking inside [window_start, horizon] and
    commit. Raises ConfigurationError when the coach has no default room.
    """
    room_id = await availability_service.require_default_room_id(db, booking.coach_id)

    range_start = timeutils.start_of_day(window_start)
    range_end = timeutils.start_of_day(horizon) + timedelta(days=1)

    blocks = await availability_service.get_blocked_slots(db, booking.coach_id, range_start, range_end)
    templates = await availability_service.get_weekly_availability(
        db, booking.coach_id, day_of_week=booking.day_of_week
    )
    additions = await availability_service.get_availability_additions(
        db, booking.coach_id, range_start - timedelta(days=1), range_end
    )

    own = await db.execute(
        select(TrainingSession.start_time).where(
            TrainingSession.recurring_booking_id == booking.id,
        )
    )
    coach_live = await db.execute(
        select(TrainingSession.start_time).where(
            TrainingSession.coach_id == booking.coach_id,
            TrainingSession.start_time >= range_start,
            TrainingSession.start_time < range_end,
            TrainingSession.status != SessionStatus.CANCELLED,
        )
    )
    taken = set(own.scalars().all()) | set(coach_live.scalars().all())

    start_minutes = timeutils.parse_hhmm(booking.start_time)
    end_minutes = timeutils.parse_hhmm(booking.end_time)

    created = 0
    for day in recurring_booking_dates(booking, window_start, horizon):
        start = timeutils.at_minutes(day, start_minutes)
        end = timeutils.at_minutes(day, end_minutes)
        if start <= now or start in taken:
            continue
        if overlapping_block(blocks, start, end) is not None:
            continue
        if not interval_allowed(templates, additions, start, end, booking.day_of_week):
            continue

        session = TrainingSession(
            coach_id=booking.coach_id,
            room_id=room_id,
            member_id=booking.member_id,
            recurring_booking_id=booking.id,
            title=RECURRING_SESSION_TITLE,
            type=SessionType.ONE_TO_ONE,
            capacity=1,
            booked_count=1,
            start_time=start,
            end_time=end,
            status=SessionStatus.SCHEDULED,
            is_recurring=True,
        )
        db.add(session)
        await db.flush()
        db.add(
            Booking(
                session_id=session.id,
                member_id=booking.member_id,
                status=BookingStatus.CONFIRMED,
            )
        )
        taken.add(start)
        created += 1

    await db.commit()
    return created


async def generate_sessions_from_template(
    db: AsyncSession,
    coach_id: int,
    weeks_ahead: int = 4,
    now: Optional[datetime] = None,
) -> int:
    """
    Open one bookable ONE_TO_ONE session per template row per matching day
    over the next `weeks_ahead` weeks. Raises ConfigurationError when the
    coach has no default room.
    """
    now = now or timeutils.now()
    templates = await availability_service.get_weekly_availability(db, coach_id)
    if not templates:
        return 0
    default_room_id = await availability_service.require_default_room_id(db, coach_id)

    today = now.date()
    horizon = today + timedelta(weeks=weeks_ahead)
    range_start = timeutils.start_of_day(today)
    range_end = timeutils.start_of_day(horizon) + timedelta(days=1)

    blocks = await availability_service.get_blocked_slots(db, coach_id, range_start, range_end)
    existing = await db.execute(
        select(TrainingSession.start_time).where(
            TrainingSession.coach_id == coach_id,
            TrainingSession.start_time >= range_start,
            TrainingSession.start_time < range_end,
            TrainingSession.status != SessionStatus.CANCELLED,
        )
    )
    taken = set(existing.scalars().all())

    rows_by_day = {}
    for row in templates:
        rows_by_day.setdefault(row.day_of_week, []).append(row)

    created = 0
    for day, weekday in timeutils.iter_days(today, horizon):
        for row in rows_by_day.get(weekday, ()):
            start = timeutils.at_minutes(day, timeutils.parse_hhmm(row.start_time))
            end = timeutils.at_minutes(day, timeutils.parse_hhmm(row.end_time))
            if start <= now or start in taken:
                continue
            if overlapping_block(blocks, start, end) is not None:
                continue
            db.add(
                TrainingSession(
                    coach_id=coach_id,
                    room_id=row.room_id or default_room_id,
                    title=TEMPLATE_SESSION_TITLE,
                    description="Individual session slot available for booking",
                    type=SessionType.ONE_TO_ONE,
                    capacity=1,
                    booked_count=0,
                    start_time=start,
                    end_time=end,
                    status=SessionStatus.SCHEDULED,
                )
            )
            taken.add(start)
            created += 1

    await db.commit()
    record_generated("availability_template", created)
    logger.info("template_sessions_generated", coach_id=coach_id, created=created, weeks_ahead=weeks_ahead)
    return created


async def mark_past_sessions_completed(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Move every scheduled session that has ended to completed. Idempotent."""
    now = now or timeutils.now()
    result = await db.execute(
        update(TrainingSession)
        .where(
            TrainingSession.status == SessionStatus.SCHEDULED,
            TrainingSession.end_time <= now,
        )
        .values(status=SessionStatus.COMPLETED, version=TrainingSession.version + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    marked = result.rowcount or 0
    if marked:
        sessions_completed.inc(marked)
    return marked


def _skip(
    result: GenerationResult,
    booking_id: int,
    coach_id: int,
    error: DomainError,
    reason: str,
) -> None:
    result.skipped.append(
        GenerationSkip(
            recurring_booking_id=booking_id,
            coach_id=coach_id,
            reason=error.message,
            code=error.code,
        )
    )
    record_generation_skip(reason)


async def generate_all_sessions(
    db: AsyncSession,
    weeks_ahead: Optional[int] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """Full generation run; see the module docstring."""
    weeks_ahead = weeks_ahead if weeks_ahead is not None else settings.GENERATION_WEEKS_AHEAD
    now = now or timeutils.now()
    today = now.date()
    horizon = today + timedelta(weeks=weeks_ahead)
    started = time.perf_counter()
    result = GenerationResult()

    active = await db.execute(
        select(RecurringBooking.id)
        .where(RecurringBooking.status == RecurringBookingStatus.ACTIVE)
        .order_by(RecurringBooking.id)
    )
    booking_ids = list(active.scalars().all())

    for booking_id in booking_ids:
        # Re-read each time: a rollback below expires everything in the session
        booking = await db.get(RecurringBooking, booking_id)
        if booking is None or booking.status != RecurringBookingStatus.ACTIVE:
            continue
        coach_id = booking.coach_id
        try:
            created = await generate_sessions_for_recurring_booking(
                db, booking, max(today, booking.start_date), horizon, now
            )
        except ConfigurationError as e:
            logger.warning(
                "generation_skipped_no_default_room",
                recurring_booking_id=booking_id,
                coach_id=coach_id,
            )
            _skip(result, booking_id, coach_id, e, "no_default_room")
            continue
        except (DomainError, IntegrityError) as e:
            await db.rollback()
            logger.error(
                "generation_failed",
                recurring_booking_id=booking_id,
                coach_id=coach_id,
                error=str(e),
            )
            error = e if isinstance(e, DomainError) else DomainError(
                "A session already exists at this time", code="session_exists"
            )
            _skip(result, booking_id, coach_id, error, "error")
            continue

        result.from_recurring_bookings += created
        if created:
            logger.info(
                "sessions_generated",
                recurring_booking_id=booking.id,
                coach_id=booking.coach_id,
                member_id=booking.member_id,
                created=created,
            )

    record_generated("recurring_booking", result.from_recurring_bookings)

    if settings.GENERATE_TEMPLATE_SESSIONS:
        coaches = await db.execute(
            select(User.id).where(User.role.in_(Role.COACHING), User.is_active.is_(True))
        )
        for coach_id in coaches.scalars().all():
            try:
                result.from_availability_template += await generate_sessions_from_template(
                    db, coach_id, weeks_ahead=weeks_ahead, now=now
                )
            except ConfigurationError:
                logger.warning("template_generation_skipped_no_default_room", coach_id=coach_id)
            except IntegrityError as e:
                await db.rollback()
                logger.error("template_generation_failed", coach_id=coach_id, error=str(e))

    result.marked_completed = await mark_past_sessions_completed(db, now)
    result.total_generated = result.from_recurring_bookings + result.from_availability_template

    generation_duration.observe(time.perf_counter() - started)
    logger.info(
        "generation_completed",
        total_generated=result.total_generated,
        from_recurring_bookings=result.from_recurring_bookings,
        from_availability_template=result.from_availability_template,
        marked_completed=result.marked_completed,
        skipped=len(result.skipped),
        weeks_ahead=weeks_ahead,
    )
    return result

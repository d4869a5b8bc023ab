"""
Booking service with concurrency-safe seat reservation.

CONCURRENCY STRATEGY: Guarded Increment with Re-check
=====================================================

Problem:
  Two members try to take the last seat of a session simultaneously.
  Both read booked_count = capacity - 1, both insert a booking.
  Result: Overbooking.

Solution:
  `training_sessions` carries a denormalized `booked_count` and a
  `version` column.

  1. Read the session and reject it early when full or not bookable
  2. UPDATE training_sessions
        SET booked_count = booked_count + 1, version = version + 1
      WHERE id = :session_id
        AND booked_count < capacity AND status = 'scheduled'
  3. If rows_affected == 0, the session filled up or changed status under
     us -> re-read it and report why (full, cancelled, ...)

  The capacity check and the seat increment are one statement, so with N
  free seats exactly N racers pass it however many arrive at once; the
  rest get CapacityExceededError. The version is bumped so readers can
  tell the row changed, but it is not part of the guard: a seat taken by
  someone else does not make ours unavailable. The CHECK constraint
  booked_count <= capacity is the final safety net.

Booking a projected slot creates the session itself; there the partial
unique index on (coach_id, start_time) decides the race and the loser
gets "slot no longer available".
"""

import time
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import get_settings
from gymbook.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from gymbook.core.logging import get_logger
from gymbook.core.metrics import (
    booking_cancellations,
    booking_latency,
    booking_retries,
    record_booking_attempt,
)
from gymbook.core import timeutils
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import User
from gymbook.services import availability_service
from gymbook.services.slot_projector import load_coach_availability, project_available_slots
from gymbook.services.state_machine import BookingActor, apply_booking_transition

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = settings.MAX_BOOKING_RETRIES


async def _read_session(db: AsyncSession, session_id: int) -> Optional[TrainingSession]:
    # populate_existing: a retry must see the row as it is now, not the identity-map copy
    result = await db.execute(
        select(TrainingSession)
        .where(TrainingSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _has_confirmed_booking(db: AsyncSession, session_id: int, member_id: int) -> bool:
    result = await db.execute(
        select(Booking.id).where(
            Booking.session_id == session_id,
            Booking.member_id == member_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
    )
    return result.first() is not None


def _ensure_bookable(session: Optional[TrainingSession], session_id: int, now: datetime) -> TrainingSession:
    if session is None:
        raise NotFoundError(f"Session {session_id} not found", code="session_not_found")

    if session.status != SessionStatus.SCHEDULED:
        raise ValidationError(
            f"Session is {session.status} and cannot be booked",
            code="session_not_scheduled",
        )
    if session.start_time <= now:
        raise ValidationError("Session has already started", code="session_started")

    if session.is_full:
        logger.warning(
            "booking_failed_full",
            session_id=session_id,
            capacity=session.capacity,
            booked=session.booked_count,
        )
        record_booking_attempt("full")
        raise CapacityExceededError(
            f"Session is full ({session.booked_count}/{session.capacity})",
            code="session_full",
        )
    return session


async def create_booking(
    db: AsyncSession,
    session_id: int,
    member_id: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Book one seat on an existing session. The seat is taken by a guarded
    increment; when it matches no row the session is re-read so the caller
    gets the real reason (full, cancelled, started).
    """
    now = now or timeutils.now()
    started = time.perf_counter()

    # Check for existing booking (idempotency)
    if await _has_confirmed_booking(db, session_id, member_id):
        record_booking_attempt("conflict")
        raise ConflictError(
            "You already have a booking for this session",
            code="already_booked",
        )

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        # Step 1: Read current session state
        session = _ensure_bookable(await _read_session(db, session_id), session_id, now)

        # Step 2: Take a seat only while one is left
        update_result = await db.execute(
            update(TrainingSession)
            .where(
                TrainingSession.id == session_id,
                TrainingSession.booked_count < TrainingSession.capacity,
                TrainingSession.status == SessionStatus.SCHEDULED,
            )
            .values(
                booked_count=TrainingSession.booked_count + 1,
                version=TrainingSession.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if update_result.rowcount == 0:
            # Filled up or changed status since the read
            seen_booked = session.booked_count
            await db.rollback()
            logger.info(
                "booking_retry",
                session_id=session_id,
                attempt=attempt,
                reason="guard_failed",
                seen_booked=seen_booked,
            )
            booking_retries.inc()
            continue

        # Step 3: Create booking record
        booking = Booking(
            session_id=session_id,
            member_id=member_id,
            status=BookingStatus.CONFIRMED,
        )
        db.add(booking)
        try:
            await db.commit()
        except IntegrityError:
            # Same member booking twice in parallel: the partial unique index decides
            await db.rollback()
            record_booking_attempt("conflict")
            raise ConflictError(
                "You already have a booking for this session",
                code="already_booked",
            )

        booking_latency.observe(time.perf_counter() - started)
        record_booking_attempt("success")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            member_id=member_id,
            session_id=session_id,
            attempt=attempt,
        )
        return booking

    # Every attempt lost the guard: the re-read says why
    _ensure_bookable(await _read_session(db, session_id), session_id, now)
    record_booking_attempt("error")
    raise ConflictError("Booking failed unexpectedly", code="booking_failed")


async def book_available_slot(
    db: AsyncSession,
    coach_id: int,
    member_id: int,
    start_time: datetime,
    end_time: datetime,
    now: Optional[datetime] = None,
) -> Tuple[TrainingSession, Booking]:
    """
    Turn a projected slot into a ONE_TO_ONE session plus a confirmed
    booking, in one transaction.
    """
    now = now or timeutils.now()
    started = time.perf_counter()
    if end_time <= start_time:
        raise ValidationError("End time must be after start time", code="invalid_range")

    await availability_service.get_coach(db, coach_id)
    room_id = await availability_service.require_default_room_id(db, coach_id)

    # The slot must still be offered by the projector
    day = start_time.date()
    coaches = await load_coach_availability(db, [coach_id], day, day)
    live = await db.execute(
        select(TrainingSession).where(
            TrainingSession.coach_id == coach_id,
            TrainingSession.start_time == start_time,
            TrainingSession.status != SessionStatus.CANCELLED,
        )
    )
    offered = project_available_slots(coaches, live.scalars().all(), day, day, now)
    if not any(s.start_time == start_time and s.end_time == end_time for s in offered):
        record_booking_attempt("conflict")
        raise ConflictError("This slot is no longer available", code="slot_unavailable")

    session = TrainingSession(
        coach_id=coach_id,
        room_id=room_id,
        member_id=member_id,
        type=SessionType.ONE_TO_ONE,
        capacity=1,
        booked_count=1,
        start_time=start_time,
        end_time=end_time,
        status=SessionStatus.SCHEDULED,
    )
    db.add(session)
    try:
        await db.flush()
        booking = Booking(session_id=session.id, member_id=member_id, status=BookingStatus.CONFIRMED)
        db.add(booking)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        record_booking_attempt("conflict")
        raise ConflictError("This slot is no longer available", code="slot_unavailable")

    booking_latency.observe(time.perf_counter() - started)
    record_booking_attempt("success")
    logger.info(
        "slot_booked",
        session_id=session.id,
        booking_id=booking.id,
        coach_id=coach_id,
        member_id=member_id,
        start_time=start_time,
    )
    return session, booking


async def release_seat(db: AsyncSession, session_id: int) -> None:
    await db.execute(
        update(TrainingSession)
        .where(TrainingSession.id == session_id, TrainingSession.booked_count > 0)
        .values(
            booked_count=TrainingSession.booked_count - 1,
            version=TrainingSession.version + 1,
        )
        .execution_options(synchronize_session=False)
    )


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user: User,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Cancel a booking and release its seat.

    The member who holds the booking cancels as "member" (upcoming sessions
    only); the session's coach, or an owner, cancels as "coach".
    """
    now = now or timeutils.now()
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", code="booking_not_found")

    session = await _read_session(db, booking.session_id)
    if booking.member_id == user.id:
        actor = BookingActor.MEMBER
    elif user.manages(session.coach_id):
        actor = BookingActor.COACH
    else:
        raise ForbiddenError("You cannot cancel this booking", code="not_booking_owner")

    apply_booking_transition(booking, BookingActor.TARGET_STATUS[actor], session, now)
    await release_seat(db, session.id)
    await db.commit()

    booking_cancellations.labels(actor=actor).inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        member_id=booking.member_id,
        session_id=booking.session_id,
        actor=actor,
    )
    return booking


async def get_member_bookings(db: AsyncSession, member_id: int) -> List[Booking]:
    """Get all bookings for a member, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.member_id == member_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())

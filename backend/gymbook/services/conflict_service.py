"""
Availability conflicts: upcoming sessions the coach's current availability
no longer covers (template edited, addition removed after booking).

A conflict is resolved either by keeping the session as an exception
(an addition equal to its interval is created) or by cancelling it.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import ValidationError
from gymbook.core.logging import get_logger
from gymbook.core.metrics import availability_conflicts
from gymbook.core import timeutils
from gymbook.models.availability import AvailabilityAddition
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import User
from gymbook.services import availability_service, session_service
from gymbook.services.recurrence import interval_allowed

logger = get_logger(__name__)


async def get_availability_conflicts(
    db: AsyncSession,
    coach_id: int,
    now: Optional[datetime] = None,
) -> List[TrainingSession]:
    """Scheduled future sessions outside every template row and addition."""
    now = now or timeutils.now()
    result = await db.execute(
        select(TrainingSession)
        .where(
            TrainingSession.coach_id == coach_id,
            TrainingSession.status == SessionStatus.SCHEDULED,
            TrainingSession.start_time > now,
        )
        .order_by(TrainingSession.start_time)
    )
    sessions = list(result.scalars().all())
    if not sessions:
        return []

    templates = await availability_service.get_weekly_availability(db, coach_id)
    additions = await availability_service.get_availability_additions(
        db,
        coach_id,
        sessions[0].start_time - timedelta(days=1),
        sessions[-1].end_time,
    )

    conflicts = [
        s
        for s in sessions
        if not interval_allowed(
            templates, additions, s.start_time, s.end_time, timeutils.day_of_week(s.start_time)
        )
    ]
    if conflicts:
        availability_conflicts.inc(len(conflicts))
        logger.info("availability_conflicts_detected", coach_id=coach_id, count=len(conflicts))
    return conflicts


async def _conflicting_session(
    db: AsyncSession,
    session_id: int,
    user: Optional[User],
    now: datetime,
) -> TrainingSession:
    if user is not None:
        session = await session_service.get_managed_session(db, session_id, user)
    else:
        session = await session_service.get_session(db, session_id)
    if session.status != SessionStatus.SCHEDULED or session.start_time <= now:
        raise ValidationError(
            "Only upcoming scheduled sessions can be resolved",
            code="session_not_upcoming",
        )
    return session


async def resolve_conflict_keep_exception(
    db: AsyncSession,
    session_id: int,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> AvailabilityAddition:
    """Keep the session by turning its interval into an addition."""
    now = now or timeutils.now()
    session = await _conflicting_session(db, session_id, user, now)

    addition = AvailabilityAddition(
        coach_id=session.coach_id,
        start_time=session.start_time,
        end_time=session.end_time,
        is_individual=session.type == SessionType.ONE_TO_ONE,
        is_group=session.type == SessionType.GROUP,
        room_id=session.room_id,
        reason="Kept from availability conflict",
    )
    db.add(addition)
    await db.commit()

    logger.info(
        "conflict_kept_as_exception",
        session_id=session.id,
        coach_id=session.coach_id,
        addition_id=addition.id,
    )
    return addition


async def resolve_conflict_cancel(
    db: AsyncSession,
    session_id: int,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> TrainingSession:
    """Cancel the session; its bookings are cancelled by the coach."""
    now = now or timeutils.now()
    await _conflicting_session(db, session_id, user, now)
    return await session_service.cancel_session(db, session_id, user=user, now=now)

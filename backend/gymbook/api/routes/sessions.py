"""
Training session endpoints for coaches, plus the shared session listing.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_coach, get_current_user
from gymbook.core import timeutils
from gymbook.db.session import get_db
from gymbook.models.training_session import SessionStatus
from gymbook.models.user import User
from gymbook.schemas.common import ActionResult
from gymbook.schemas.session import (
    RecurringSessionsCreate,
    RecurringSessionsResponse,
    SessionComplete,
    SessionCreate,
    SessionReschedule,
    SessionResponse,
    SkippedOccurrence,
)
from gymbook.services import session_service
from gymbook.services.cache_service import invalidate_slot_cache
from gymbook.services.session_generator import generate_sessions_from_template

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.create_session(db, coach.id, body)
    await invalidate_slot_cache()
    return session


@router.post("/recurring", response_model=RecurringSessionsResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_sessions(
    body: RecurringSessionsCreate,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Create one session per selected weekday, every `frequency` weeks."""
    result = await session_service.create_recurring_sessions(db, coach.id, body)
    await invalidate_slot_cache()
    return RecurringSessionsResponse(
        created=[SessionResponse.model_validate(s) for s in result.created],
        skipped=[SkippedOccurrence(start_time=start, reason=reason) for start, reason in result.skipped],
    )


@router.post("/generate-from-template", response_model=ActionResult[int])
async def generate_from_template(
    weeks_ahead: int = Query(4, ge=1, le=12),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Open a bookable session for every template row over the next weeks."""
    created = await generate_sessions_from_template(db, coach.id, weeks_ahead=weeks_ahead)
    await invalidate_slot_cache()
    return ActionResult[int](data=created, message=f"{created} session(s) created")


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    coach_id: Optional[int] = Query(None),
    include_cancelled: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Sessions starting in [start, end]. Coaches see their own schedule by
    default; members see the sessions they are booked on.
    """
    start = start or timeutils.start_of_day(timeutils.now().date())
    end = end or start + timedelta(weeks=4)
    member_id = None
    if coach_id is None:
        if user.can_coach:
            coach_id = user.id
        else:
            member_id = user.id
    return await session_service.get_sessions(
        db,
        coach_id,
        start,
        end,
        exclude_status=None if include_cancelled else SessionStatus.CANCELLED,
        member_id=member_id,
    )


@router.post("/{session_id}/cancel", response_model=ActionResult[SessionResponse])
async def cancel_session(
    session_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the session; every confirmed booking is cancelled by the coach."""
    session = await session_service.cancel_session(db, session_id, user=coach)
    await invalidate_slot_cache()
    return ActionResult[SessionResponse](data=SessionResponse.model_validate(session))


@router.post("/{session_id}/complete", response_model=ActionResult[SessionResponse])
async def complete_session(
    session_id: int,
    body: Optional[SessionComplete] = None,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.complete_session(
        db, session_id, user=coach, notes=body.notes if body else None
    )
    return ActionResult[SessionResponse](data=SessionResponse.model_validate(session))


@router.post("/{session_id}/no-show", response_model=ActionResult[SessionResponse])
async def mark_no_show(
    session_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.mark_no_show(db, session_id, user=coach)
    return ActionResult[SessionResponse](data=SessionResponse.model_validate(session))


@router.post("/{session_id}/reschedule", response_model=ActionResult[SessionResponse])
async def reschedule_session(
    session_id: int,
    body: SessionReschedule,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.reschedule_session(
        db, session_id, body.start_time, body.end_time, user=coach
    )
    await invalidate_slot_cache()
    return ActionResult[SessionResponse](data=SessionResponse.model_validate(session))

"""
Availability conflict endpoints: list, keep as exception, cancel.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_coach
from gymbook.db.session import get_db
from gymbook.models.user import User
from gymbook.schemas.availability import AdditionResponse
from gymbook.schemas.common import ActionResult
from gymbook.schemas.conflict import ConflictResponse
from gymbook.schemas.session import SessionResponse
from gymbook.services import conflict_service
from gymbook.services.cache_service import invalidate_slot_cache

router = APIRouter(prefix="/conflicts", tags=["Conflicts"])


@router.get("", response_model=list[ConflictResponse])
async def list_conflicts(
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    sessions = await conflict_service.get_availability_conflicts(db, coach.id)
    return [
        ConflictResponse(
            session_id=s.id,
            coach_id=s.coach_id,
            member_id=s.member_id,
            start_time=s.start_time,
            end_time=s.end_time,
            type=s.type,
            booked_count=s.booked_count,
            recurring_booking_id=s.recurring_booking_id,
        )
        for s in sessions
    ]


@router.post("/{session_id}/keep", response_model=ActionResult[AdditionResponse])
async def keep_as_exception(
    session_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    addition = await conflict_service.resolve_conflict_keep_exception(db, session_id, user=coach)
    await invalidate_slot_cache()
    return ActionResult[AdditionResponse](data=AdditionResponse.model_validate(addition))


@router.post("/{session_id}/cancel", response_model=ActionResult[SessionResponse])
async def cancel_conflicting_session(
    session_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    session = await conflict_service.resolve_conflict_cancel(db, session_id, user=coach)
    await invalidate_slot_cache()
    return ActionResult[SessionResponse](data=SessionResponse.model_validate(session))

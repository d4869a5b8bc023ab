"""
Slot endpoints: the member-facing projection and the coach's day view.
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_coach, get_current_user
from gymbook.core.exceptions import ValidationError
from gymbook.db.session import get_db
from gymbook.models.user import User
from gymbook.schemas.slot import AvailableSlotResponse, DaySlotResponse
from gymbook.services import availability_service
from gymbook.services.slot_calculus import BlockedSlotView, BookedSlot, ExceptionalSlot, Slot
from gymbook.services.slot_projector import get_available_slots

router = APIRouter(prefix="/slots", tags=["Slots"])

MAX_RANGE_DAYS = 12 * 7


def _to_response(slot: Slot) -> DaySlotResponse:
    response = DaySlotResponse(
        start_time=slot.start_time,
        end_time=slot.end_time,
        status=slot.status,
        duration=slot.duration,
        is_individual=slot.is_individual,
        is_group=slot.is_group,
        room_id=slot.room_id,
        is_exception=slot.is_exception,
        is_recurring_source=slot.is_recurring_source,
    )
    if isinstance(slot, BookedSlot):
        response.session_id = slot.session.id
    elif isinstance(slot, BlockedSlotView):
        response.block_id = slot.block.id
    elif isinstance(slot, ExceptionalSlot):
        response.addition_id = slot.addition.id
    return response


@router.get("/available", response_model=list[AvailableSlotResponse])
async def list_available_slots(
    start_date: date = Query(...),
    end_date: Optional[date] = Query(None),
    coach_id: Optional[list[int]] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Bookable one-to-one slots. Cached in Redis; the cache is invalidated
    by every booking, session and availability write.
    """
    end_date = end_date or start_date + timedelta(days=6)
    if end_date < start_date:
        raise ValidationError("End date must not be before start date", code="invalid_range")
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise ValidationError(f"Range is limited to {MAX_RANGE_DAYS} days", code="range_too_large")
    slots = await get_available_slots(db, start_date, end_date, coach_ids=coach_id)
    return [AvailableSlotResponse.model_validate(slot) for slot in slots]


@router.get("/day", response_model=list[DaySlotResponse])
async def day_slots(
    day: date = Query(..., alias="date"),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Every slot of the coach's day: free, booked, blocked or exceptional."""
    slots = await availability_service.get_day_slots(db, coach.id, day)
    return [_to_response(slot) for slot in slots]


@router.get("/calendar", response_model=dict[date, list[DaySlotResponse]])
async def calendar(
    start_date: date = Query(...),
    end_date: Optional[date] = Query(None),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """The coach's week (or any range up to twelve weeks), day by day."""
    end_date = end_date or start_date + timedelta(days=6)
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise ValidationError(f"Range is limited to {MAX_RANGE_DAYS} days", code="range_too_large")
    days = await availability_service.get_calendar(db, coach.id, start_date, end_date)
    return {day: [_to_response(slot) for slot in slots] for day, slots in days.items()}

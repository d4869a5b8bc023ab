"""
Coach availability endpoints: weekly template, additions, blocks, settings.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_coach
from gymbook.core import timeutils
from gymbook.db.session import get_db
from gymbook.models.user import User
from gymbook.schemas.availability import (
    AdditionCreate,
    AdditionResponse,
    BlockCreate,
    BlockResponse,
    CoachSettingsResponse,
    CoachSettingsUpdate,
    DayAvailabilityUpdate,
    WeeklyAvailabilityResponse,
)
from gymbook.services import availability_service
from gymbook.services.cache_service import invalidate_slot_cache

router = APIRouter(prefix="/availability", tags=["Availability"])

DEFAULT_LISTING_WEEKS = 12


def _listing_range(start: Optional[datetime], end: Optional[datetime]):
    start = start or timeutils.start_of_day(timeutils.now().date())
    end = end or start + timedelta(weeks=DEFAULT_LISTING_WEEKS)
    return start, end


@router.get("/weekly", response_model=list[WeeklyAvailabilityResponse])
async def get_weekly(
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.get_weekly_availability(db, coach.id)


@router.put("/weekly/{day_of_week}", response_model=list[WeeklyAvailabilityResponse])
async def replace_weekly_day(
    body: DayAvailabilityUpdate,
    day_of_week: int = Path(..., ge=0, le=6, description="0 = Sunday"),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Replace every template row of one weekday."""
    rows = await availability_service.replace_day_availability(db, coach.id, day_of_week, body.slots)
    await invalidate_slot_cache()
    return rows


@router.get("/additions", response_model=list[AdditionResponse])
async def list_additions(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    start, end = _listing_range(start, end)
    return await availability_service.get_availability_additions(db, coach.id, start, end)


@router.post("/additions", response_model=AdditionResponse, status_code=status.HTTP_201_CREATED)
async def create_addition(
    body: AdditionCreate,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    """Open an exceptional slot, optionally booking a member into it."""
    addition = await availability_service.create_addition(db, coach.id, body)
    await invalidate_slot_cache()
    return addition


@router.delete("/additions/{addition_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_addition(
    addition_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    await availability_service.delete_addition(db, coach.id, addition_id)
    await invalidate_slot_cache()


@router.get("/blocks", response_model=list[BlockResponse])
async def list_blocks(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    start, end = _listing_range(start, end)
    return await availability_service.get_blocked_slots(db, coach.id, start, end)


@router.post("/blocks", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def create_block(
    body: BlockCreate,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    block = await availability_service.create_block(db, coach.id, body)
    await invalidate_slot_cache()
    return block


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: int,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    await availability_service.delete_block(db, coach.id, block_id)
    await invalidate_slot_cache()


@router.get("/settings", response_model=CoachSettingsResponse)
async def get_settings(
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.get_coach_settings(db, coach.id)


@router.patch("/settings", response_model=CoachSettingsResponse)
async def update_settings(
    body: CoachSettingsUpdate,
    coach: User = Depends(get_current_coach),
    db: AsyncSession = Depends(get_db),
):
    return await availability_service.update_coach_settings(db, coach.id, body)

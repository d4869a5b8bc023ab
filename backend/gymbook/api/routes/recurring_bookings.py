"""
Recurring booking endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_user
from gymbook.db.session import get_db
from gymbook.models.user import User
from gymbook.schemas.common import ActionResult
from gymbook.schemas.recurring_booking import (
    RecurringBookingCancel,
    RecurringBookingCancelled,
    RecurringBookingCreate,
    RecurringBookingCreated,
    RecurringBookingResponse,
)
from gymbook.services import recurring_booking_service
from gymbook.services.cache_service import invalidate_slot_cache

router = APIRouter(prefix="/recurring-bookings", tags=["Recurring bookings"])


@router.post(
    "",
    response_model=ActionResult[RecurringBookingCreated],
    status_code=status.HTTP_201_CREATED,
)
async def create_recurring_booking(
    body: RecurringBookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Reserve a weekly slot; the first weeks of sessions are generated immediately."""
    booking, generated = await recurring_booking_service.create_recurring_booking(db, user, body)
    await invalidate_slot_cache()
    return ActionResult[RecurringBookingCreated](
        data=RecurringBookingCreated(
            recurring_booking=RecurringBookingResponse.model_validate(booking),
            sessions_generated=generated,
        ),
        message="Recurring booking created successfully",
    )


@router.get("", response_model=list[RecurringBookingResponse])
async def list_recurring_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await recurring_booking_service.list_recurring_bookings(db, user)


@router.post("/{recurring_booking_id}/cancel", response_model=ActionResult[RecurringBookingCancelled])
async def cancel_recurring_booking(
    recurring_booking_id: int,
    body: Optional[RecurringBookingCancel] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the recurring booking and every session that has not started yet."""
    future_only = body.future_only if body else True
    booking, cancelled = await recurring_booking_service.cancel_recurring_booking(
        db, recurring_booking_id, user, future_only=future_only
    )
    await invalidate_slot_cache()
    return ActionResult[RecurringBookingCancelled](
        data=RecurringBookingCancelled(
            recurring_booking=RecurringBookingResponse.model_validate(booking),
            sessions_cancelled=cancelled,
        ),
        message="Recurring booking cancelled successfully",
    )

"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import get_current_user
from gymbook.db.session import get_db
from gymbook.models.user import User
from gymbook.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    SlotBookingCreate,
    SlotBookingResponse,
)
from gymbook.schemas.common import ActionResult
from gymbook.services.booking_service import (
    book_available_slot,
    cancel_booking,
    create_booking,
    get_member_bookings,
)
from gymbook.services.cache_service import invalidate_slot_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=ActionResult[BookingResponse], status_code=status.HTTP_201_CREATED)
async def book_session(
    body: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a seat on an existing session.

    Uses optimistic locking to prevent overbooking under concurrent load.
    If the booking conflicts with another simultaneous booking, it retries
    up to MAX_BOOKING_RETRIES times before returning a 409 error.
    """
    booking = await create_booking(db, body.session_id, user.id)
    await invalidate_slot_cache()
    return ActionResult[BookingResponse](data=BookingResponse.model_validate(booking))


@router.post("/slot", response_model=ActionResult[SlotBookingResponse], status_code=status.HTTP_201_CREATED)
async def book_slot(
    body: SlotBookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Book a projected slot: creates the one-to-one session and the booking together."""
    session, booking = await book_available_slot(
        db, body.coach_id, user.id, body.start_time, body.end_time
    )
    await invalidate_slot_cache()
    return ActionResult[SlotBookingResponse](
        data=SlotBookingResponse(
            booking=BookingResponse.model_validate(booking),
            session_id=session.id,
            start_time=session.start_time,
            end_time=session.end_time,
        )
    )


@router.post("/{booking_id}/cancel", response_model=ActionResult[BookingCancelResponse])
async def cancel_booking_endpoint(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seat."""
    booking = await cancel_booking(db, booking_id, user)
    await invalidate_slot_cache()
    return ActionResult[BookingCancelResponse](
        data=BookingCancelResponse(
            message="Booking cancelled successfully",
            booking_id=booking.id,
            status=booking.status,
        )
    )


@router.get("", response_model=list[BookingResponse])
async def list_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await get_member_bookings(db, user.id)

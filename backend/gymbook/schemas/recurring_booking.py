"""
Pydantic schemas for recurring bookings.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field

from gymbook.schemas.availability import HHMM_PATTERN


class RecurringBookingCreate(BaseModel):
    coach_id: int
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    end_time: str = Field(..., pattern=HHMM_PATTERN)
    start_date: Optional[date] = None  # default: today
    end_date: Optional[date] = None  # None = open-ended
    frequency: int = Field(default=1, ge=1, le=52)
    # Coaches and owners may book on behalf of a member
    member_id: Optional[int] = None


class RecurringBookingCancel(BaseModel):
    future_only: bool = True


class RecurringBookingResponse(BaseModel):
    id: int
    coach_id: int
    member_id: int
    day_of_week: int
    start_time: str
    end_time: str
    start_date: date
    end_date: Optional[date]
    frequency: int
    status: str
    created_at: datetime
    cancelled_at: Optional[datetime]

    model_config = {"from_attributes": True}


class RecurringBookingCreated(BaseModel):
    recurring_booking: RecurringBookingResponse
    sessions_generated: int


class RecurringBookingCancelled(BaseModel):
    recurring_booking: RecurringBookingResponse
    sessions_cancelled: int

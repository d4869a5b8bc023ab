"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, model_validator


class BookingCreate(BaseModel):
    session_id: int


class SlotBookingCreate(BaseModel):
    coach_id: int
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _naive_wall_clock(self):
        self.start_time = self.start_time.replace(tzinfo=None)
        self.end_time = self.end_time.replace(tzinfo=None)
        return self


class BookingResponse(BaseModel):
    id: int
    session_id: int
    member_id: int
    status: str
    created_at: datetime
    cancelled_at: Optional[datetime]

    model_config = {"from_attributes": True}


class SlotBookingResponse(BaseModel):
    booking: BookingResponse
    session_id: int
    start_time: datetime
    end_time: datetime


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str

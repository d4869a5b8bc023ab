"""
Pydantic schemas for availability conflicts and generation runs.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ConflictResponse(BaseModel):
    session_id: int
    coach_id: int
    member_id: Optional[int]
    start_time: datetime
    end_time: datetime
    type: str
    booked_count: int
    recurring_booking_id: Optional[int]


class GenerationSkip(BaseModel):
    recurring_booking_id: int
    coach_id: int
    reason: str
    code: str


class GenerationResultResponse(BaseModel):
    total_generated: int
    from_recurring_bookings: int
    from_availability_template: int
    marked_completed: int
    skipped: list[GenerationSkip]

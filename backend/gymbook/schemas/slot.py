"""
Pydantic schemas for projected and calendar slots.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AvailableSlotResponse(BaseModel):
    coach_id: int
    coach_name: Optional[str]
    start_time: datetime
    end_time: datetime
    type: str
    is_available: bool

    model_config = {"from_attributes": True}


class DaySlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    status: str  # FREE, BOOKED, BLOCKED, EXCEPTIONAL
    duration: int
    is_individual: bool
    is_group: bool
    room_id: Optional[int]
    is_exception: bool
    is_recurring_source: bool
    session_id: Optional[int] = None
    block_id: Optional[int] = None
    addition_id: Optional[int] = None

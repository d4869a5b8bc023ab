"""
Pydantic schemas for training sessions.
"""

from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

from gymbook.schemas.availability import HHMM_PATTERN


class SessionCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    type: Literal["ONE_TO_ONE", "GROUP"] = "ONE_TO_ONE"
    capacity: int = Field(default=1, gt=0, le=500)
    room_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    member_id: Optional[int] = None

    @model_validator(mode="after")
    def _naive_wall_clock(self):
        self.start_time = self.start_time.replace(tzinfo=None)
        self.end_time = self.end_time.replace(tzinfo=None)
        return self


class RecurringSessionsCreate(BaseModel):
    weekdays: list[int] = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_date: date
    end_date: Optional[date] = None  # default: start_date + 3 months
    frequency: int = Field(default=1, ge=1, le=52)
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    duration: int = Field(default=60, gt=0, le=24 * 60)
    type: Literal["ONE_TO_ONE", "GROUP"] = "ONE_TO_ONE"
    capacity: int = Field(default=1, gt=0, le=500)
    room_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    policy: Literal["trust", "enforce"] = "trust"


class SessionReschedule(BaseModel):
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _naive_wall_clock(self):
        self.start_time = self.start_time.replace(tzinfo=None)
        self.end_time = self.end_time.replace(tzinfo=None)
        return self


class SessionComplete(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class SessionResponse(BaseModel):
    id: int
    coach_id: int
    room_id: int
    member_id: Optional[int]
    recurring_booking_id: Optional[int]
    title: Optional[str]
    description: Optional[str]
    notes: Optional[str]
    type: str
    capacity: int
    booked_count: int
    start_time: datetime
    end_time: datetime
    status: str
    is_recurring: bool

    model_config = {"from_attributes": True}


class SkippedOccurrence(BaseModel):
    start_time: datetime
    reason: str


class RecurringSessionsResponse(BaseModel):
    created: list[SessionResponse]
    skipped: list[SkippedOccurrence]

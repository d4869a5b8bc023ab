"""
Pydantic schemas for weekly templates, additions, blocks and coach settings.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

HHMM_PATTERN = r"^\d{1,2}:\d{2}$"


class WeeklySlotIn(BaseModel):
    start_time: str = Field(..., pattern=HHMM_PATTERN, examples=["09:00"])
    end_time: str = Field(..., pattern=HHMM_PATTERN, examples=["12:00"])
    duration: Optional[int] = Field(None, gt=0, le=24 * 60)
    is_individual: bool = True
    is_group: bool = False
    room_id: Optional[int] = None


class DayAvailabilityUpdate(BaseModel):
    slots: list[WeeklySlotIn] = Field(default_factory=list)


class WeeklyAvailabilityResponse(BaseModel):
    id: int
    coach_id: int
    day_of_week: int
    start_time: str
    end_time: str
    duration: Optional[int]
    is_individual: bool
    is_group: bool
    room_id: Optional[int]

    model_config = {"from_attributes": True}


class _TimeRange(BaseModel):
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _naive_wall_clock(self):
        # Everything is stored as local wall-clock time
        self.start_time = self.start_time.replace(tzinfo=None)
        self.end_time = self.end_time.replace(tzinfo=None)
        return self


class AdditionCreate(_TimeRange):
    is_individual: bool = True
    is_group: bool = False
    room_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)
    # Book this member straight into the new slot
    member_id: Optional[int] = None


class AdditionResponse(BaseModel):
    id: int
    coach_id: int
    start_time: datetime
    end_time: datetime
    is_individual: bool
    is_group: bool
    room_id: Optional[int]
    reason: Optional[str]

    model_config = {"from_attributes": True}


class BlockCreate(_TimeRange):
    reason: Optional[str] = Field(None, max_length=1000)


class BlockResponse(BaseModel):
    id: int
    coach_id: int
    start_time: datetime
    end_time: datetime
    reason: Optional[str]

    model_config = {"from_attributes": True}


class CoachSettingsUpdate(BaseModel):
    default_room_id: Optional[int] = None
    default_duration: Optional[int] = Field(None, gt=0, le=24 * 60)


class CoachSettingsResponse(BaseModel):
    coach_id: int
    default_room_id: Optional[int]
    default_duration: int

    model_config = {"from_attributes": True}

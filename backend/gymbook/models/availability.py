"""
Coach availability: the weekly template, one-off additions and blocks.

Key design decisions:
- Template times are "HH:MM" strings (wall clock); the engine parses them
  to minutes since midnight before comparing anything
- Additions and blocks are concrete datetime ranges, valid only for the
  dates they cover
- Blocks take precedence over both the template and additions
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index, CheckConstraint

from gymbook.db.base import Base, TimestampMixin


class WeeklyAvailability(Base, TimestampMixin):
    __tablename__ = "weekly_availability"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)  # "HH:MM"
    duration = Column(Integer, nullable=True)  # slot length in minutes
    is_individual = Column(Boolean, nullable=False, default=False)
    is_group = Column(Boolean, nullable=False, default=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_weekly_day_of_week"),
        CheckConstraint("duration IS NULL OR duration > 0", name="check_weekly_duration_positive"),
        Index("ix_weekly_availability_coach_day", "coach_id", "day_of_week"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyAvailability(coach={self.coach_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time})>"
        )


class AvailabilityAddition(Base, TimestampMixin):
    __tablename__ = "availability_additions"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_individual = Column(Boolean, nullable=False, default=True)
    is_group = Column(Boolean, nullable=False, default=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_addition_range"),
        Index("ix_availability_additions_coach_start", "coach_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityAddition(id={self.id}, coach={self.coach_id}, start={self.start_time})>"


class BlockedSlot(Base, TimestampMixin):
    __tablename__ = "blocked_slots"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_block_range"),
        Index("ix_blocked_slots_coach_start", "coach_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<BlockedSlot(id={self.id}, coach={self.coach_id}, start={self.start_time})>"

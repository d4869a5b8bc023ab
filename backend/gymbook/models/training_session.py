"""
TrainingSession: the materialized, bookable unit.

Key design decisions:
- Partial unique index on (coach_id, start_time) over non-cancelled rows:
  one live session per coach and start instant, and cancelling frees the slot
- `booked_count` is denormalized (confirmed bookings) so the capacity check
  is a single conditional UPDATE instead of COUNT + INSERT
- `version` column enables optimistic locking for concurrent booking
- Sessions are never deleted; cancellation is a status change
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index, CheckConstraint, text

from gymbook.db.base import Base, TimestampMixin


class SessionType:
    ONE_TO_ONE = "ONE_TO_ONE"
    GROUP = "GROUP"

    ALL = (ONE_TO_ONE, GROUP)


class SessionStatus:
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    ALL = (SCHEDULED, COMPLETED, CANCELLED, NO_SHOW)


class TrainingSession(Base, TimestampMixin):
    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    member_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    recurring_booking_id = Column(
        Integer, ForeignKey("recurring_bookings.id"), nullable=True, index=True
    )
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=SessionType.ONE_TO_ONE)
    capacity = Column(Integer, nullable=False, default=1)
    booked_count = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED)
    is_recurring = Column(Boolean, nullable=False, default=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_session_capacity_positive"),
        CheckConstraint("booked_count >= 0", name="check_booked_count_non_negative"),
        CheckConstraint("booked_count <= capacity", name="check_booked_lte_capacity"),
        CheckConstraint("end_time > start_time", name="check_session_range"),
        CheckConstraint("type IN ('ONE_TO_ONE', 'GROUP')", name="check_session_type"),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
            name="check_session_status",
        ),
        Index(
            "uq_training_sessions_coach_start_live",
            "coach_id",
            "start_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        # Range scans: "sessions of this coach between A and B"
        Index("ix_training_sessions_coach_start", "coach_id", "start_time"),
        # Completion sweep: WHERE status = 'scheduled' AND end_time <= now
        Index("ix_training_sessions_status_end", "status", "end_time"),
    )

    @property
    def is_full(self) -> bool:
        return self.booked_count >= self.capacity

    def __repr__(self) -> str:
        return (
            f"<TrainingSession(id={self.id}, coach={self.coach_id}, start={self.start_time}, "
            f"status={self.status}, booked={self.booked_count}/{self.capacity})>"
        )

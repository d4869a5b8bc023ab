"""
RecurringBooking: a member's standing weekly reservation with a coach.

The session generator walks these forward to a rolling horizon and
materializes one TrainingSession per matching week.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Index, CheckConstraint

from gymbook.db.base import Base, TimestampMixin


class RecurringBookingStatus:
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class RecurringBooking(Base, TimestampMixin):
    __tablename__ = "recurring_bookings"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)  # "HH:MM"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # None = open-ended
    frequency = Column(Integer, nullable=False, default=1)  # weeks between occurrences
    status = Column(String(20), nullable=False, default=RecurringBookingStatus.ACTIVE)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_recurring_day_of_week"),
        CheckConstraint("frequency > 0", name="check_recurring_frequency_positive"),
        CheckConstraint("status IN ('ACTIVE', 'CANCELLED')", name="check_recurring_status"),
        Index("ix_recurring_bookings_coach_day_status", "coach_id", "day_of_week", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringBooking(id={self.id}, coach={self.coach_id}, member={self.member_id}, "
            f"day={self.day_of_week}, {self.start_time}-{self.end_time}, status={self.status})>"
        )

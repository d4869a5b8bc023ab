"""
Booking model representing a member's seat in a training session.

Key design decisions:
- Partial unique index on (session_id, member_id) over CONFIRMED rows:
  one active booking per member per session, rebooking after cancel allowed
- Status field allows cancellation without deleting records
- `cancelled_at` keeps the history of when a seat was released
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, text

from gymbook.db.base import Base, TimestampMixin


class BookingStatus:
    CONFIRMED = "CONFIRMED"
    CANCELLED_BY_MEMBER = "CANCELLED_BY_MEMBER"
    CANCELLED_BY_COACH = "CANCELLED_BY_COACH"

    ALL = (CONFIRMED, CANCELLED_BY_MEMBER, CANCELLED_BY_COACH)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("training_sessions.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=BookingStatus.CONFIRMED)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            "uq_bookings_session_member_confirmed",
            "session_id",
            "member_id",
            unique=True,
            postgresql_where=text("status = 'CONFIRMED'"),
            sqlite_where=text("status = 'CONFIRMED'"),
        ),
        CheckConstraint(
            "status IN ('CONFIRMED', 'CANCELLED_BY_MEMBER', 'CANCELLED_BY_COACH')",
            name="check_booking_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, member={self.member_id}, session={self.session_id}, status={self.status})>"

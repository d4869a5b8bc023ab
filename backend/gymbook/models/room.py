"""
Rooms and per-coach scheduling settings.

Room administration lives outside this service; the engine only needs a
room to attach generated sessions to.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, CheckConstraint

from gymbook.db.base import Base, TimestampMixin


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, name={self.name})>"


class CoachSettings(Base, TimestampMixin):
    __tablename__ = "coach_settings"

    id = Column(Integer, primary_key=True, index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    default_room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    default_duration = Column(Integer, nullable=False, default=60)

    __table_args__ = (
        CheckConstraint("default_duration > 0", name="check_default_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<CoachSettings(coach={self.coach_id}, room={self.default_room_id})>"

"""
User model. A single table holds members, coaches and owners.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from gymbook.db.base import Base, TimestampMixin


class Role:
    MEMBER = "member"
    COACH = "coach"
    OWNER = "owner"

    ALL = (MEMBER, COACH, OWNER)
    # Owners run the gym and can coach as well
    COACHING = (COACH, OWNER)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=Role.MEMBER)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('member', 'coach', 'owner')", name="check_user_role"),
    )

    @property
    def can_coach(self) -> bool:
        return self.role in Role.COACHING

    def manages(self, coach_id: int) -> bool:
        """Coaches manage their own schedule; owners manage everyone's."""
        return self.role == Role.OWNER or (self.can_coach and self.id == coach_id)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

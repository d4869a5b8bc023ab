"""
Declarative base and shared column mixins.
"""

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase

from gymbook.core.timeutils import now


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    # Naive local wall-clock timestamps, like every other time column
    created_at = Column(DateTime, nullable=False, default=now, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, default=now, onupdate=now, server_default=func.now()
    )

"""
Legal status transitions for sessions and bookings.

    session:  scheduled -> completed | cancelled | no_show
    booking:  CONFIRMED -> CANCELLED_BY_MEMBER | CANCELLED_BY_COACH

Every other transition raises InvalidTransitionError. The checks here are
pure; services apply them and persist the result.
"""

from datetime import datetime
from typing import Dict, FrozenSet

from gymbook.core.exceptions import InvalidTransitionError
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.training_session import SessionStatus, TrainingSession

SESSION_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    SessionStatus.SCHEDULED: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
}

BOOKING_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED_BY_MEMBER, BookingStatus.CANCELLED_BY_COACH}
    ),
}


class BookingActor:
    MEMBER = "member"
    COACH = "coach"

    TARGET_STATUS = {
        MEMBER: BookingStatus.CANCELLED_BY_MEMBER,
        COACH: BookingStatus.CANCELLED_BY_COACH,
    }


def check_session_transition(session: TrainingSession, target: str, now: datetime) -> None:
    allowed = SESSION_TRANSITIONS.get(session.status, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Session {session.id} cannot go from {session.status} to {target}",
            code="invalid_session_transition",
            details={"from": session.status, "to": target},
        )
    if target == SessionStatus.NO_SHOW and now < session.start_time:
        raise InvalidTransitionError(
            "A session can only be marked no-show once it has started",
            code="no_show_before_start",
        )


def check_booking_transition(
    booking: Booking,
    target: str,
    session: TrainingSession,
    now: datetime,
) -> None:
    allowed = BOOKING_TRANSITIONS.get(booking.status, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Booking {booking.id} cannot go from {booking.status} to {target}",
            code="invalid_booking_transition",
            details={"from": booking.status, "to": target},
        )
    if target == BookingStatus.CANCELLED_BY_MEMBER and (
        session.status != SessionStatus.SCHEDULED or session.start_time <= now
    ):
        raise InvalidTransitionError(
            "Only upcoming sessions can be cancelled by the member",
            code="session_not_upcoming",
        )


def apply_session_transition(session: TrainingSession, target: str, now: datetime) -> None:
    check_session_transition(session, target, now)
    session.status = target


def apply_booking_transition(
    booking: Booking,
    target: str,
    session: TrainingSession,
    now: datetime,
) -> None:
    check_booking_transition(booking, target, session, now)
    booking.status = target
    booking.cancelled_at = now

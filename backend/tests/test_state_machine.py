"""
Tests for session and booking status transitions.
"""

from datetime import datetime

import pytest

from gymbook.core.exceptions import InvalidTransitionError
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.training_session import SessionStatus, TrainingSession
from gymbook.services.state_machine import (
    apply_booking_transition,
    apply_session_transition,
    check_session_transition,
)

START = datetime(2030, 1, 7, 10, 0)
BEFORE = datetime(2030, 1, 7, 9, 0)
AFTER = datetime(2030, 1, 7, 10, 30)


def make_session(status=SessionStatus.SCHEDULED):
    return TrainingSession(id=1, status=status, start_time=START, end_time=datetime(2030, 1, 7, 11, 0))


def make_booking(status=BookingStatus.CONFIRMED):
    return Booking(id=1, session_id=1, member_id=2, status=status)


@pytest.mark.parametrize(
    "target", [SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW]
)
def test_scheduled_session_can_reach_every_terminal_state(target):
    session = make_session()

    apply_session_transition(session, target, AFTER)

    assert session.status == target


@pytest.mark.parametrize("status", [SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW])
def test_terminal_session_states_are_final(status):
    session = make_session(status)

    with pytest.raises(InvalidTransitionError) as exc:
        apply_session_transition(session, SessionStatus.CANCELLED, AFTER)

    assert exc.value.code == "invalid_session_transition"
    assert session.status == status


def test_no_show_only_after_start():
    with pytest.raises(InvalidTransitionError) as exc:
        check_session_transition(make_session(), SessionStatus.NO_SHOW, BEFORE)
    assert exc.value.code == "no_show_before_start"


def test_member_cancels_upcoming_booking():
    booking = make_booking()

    apply_booking_transition(booking, BookingStatus.CANCELLED_BY_MEMBER, make_session(), BEFORE)

    assert booking.status == BookingStatus.CANCELLED_BY_MEMBER
    assert booking.cancelled_at == BEFORE


def test_member_cannot_cancel_started_session():
    with pytest.raises(InvalidTransitionError) as exc:
        apply_booking_transition(make_booking(), BookingStatus.CANCELLED_BY_MEMBER, make_session(), AFTER)
    assert exc.value.code == "session_not_upcoming"


def test_coach_can_cancel_after_start():
    booking = make_booking()

    apply_booking_transition(booking, BookingStatus.CANCELLED_BY_COACH, make_session(), AFTER)

    assert booking.status == BookingStatus.CANCELLED_BY_COACH


def test_cancelled_booking_is_final():
    booking = make_booking(BookingStatus.CANCELLED_BY_MEMBER)

    with pytest.raises(InvalidTransitionError) as exc:
        apply_booking_transition(booking, BookingStatus.CANCELLED_BY_COACH, make_session(), BEFORE)
    assert exc.value.code == "invalid_booking_transition"

from gymbook.models.user import User, Role
from gymbook.models.room import Room, CoachSettings
from gymbook.models.availability import WeeklyAvailability, AvailabilityAddition, BlockedSlot
from gymbook.models.recurring_booking import RecurringBooking, RecurringBookingStatus
from gymbook.models.training_session import TrainingSession, SessionType, SessionStatus
from gymbook.models.booking import Booking, BookingStatus

__all__ = [
    "User", "Role",
    "Room", "CoachSettings",
    "WeeklyAvailability", "AvailabilityAddition", "BlockedSlot",
    "RecurringBooking", "RecurringBookingStatus",
    "TrainingSession", "SessionType", "SessionStatus",
    "Booking", "BookingStatus",
]

from gymbook.schemas.user import UserCreate, UserResponse, UserLogin, Token
from gymbook.schemas.common import ActionResult, ActionError
from gymbook.schemas.booking import BookingCreate, BookingResponse, SlotBookingCreate
from gymbook.schemas.session import SessionCreate, SessionResponse, RecurringSessionsCreate
from gymbook.schemas.recurring_booking import RecurringBookingCreate, RecurringBookingResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "ActionResult", "ActionError",
    "BookingCreate", "BookingResponse", "SlotBookingCreate",
    "SessionCreate", "SessionResponse", "RecurringSessionsCreate",
    "RecurringBookingCreate", "RecurringBookingResponse",
]

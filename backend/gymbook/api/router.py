"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from gymbook.api.routes import (
    auth,
    availability,
    bookings,
    conflicts,
    cron,
    recurring_bookings,
    sessions,
    slots,
)
from gymbook.schemas.common import ActionError

# Every DomainError is rendered with the ActionError body
ERROR_RESPONSES = {
    code: {"model": ActionError} for code in (400, 401, 403, 404, 409)
}

api_router = APIRouter(prefix="/api/v1", responses=ERROR_RESPONSES)
api_router.include_router(auth.router)
api_router.include_router(availability.router)
api_router.include_router(slots.router)
api_router.include_router(sessions.router)
api_router.include_router(bookings.router)
api_router.include_router(recurring_bookings.router)
api_router.include_router(conflicts.router)
api_router.include_router(cron.router)

"""
Domain exceptions for the scheduling core.

Services raise these; the API layer converts them into a
`{"success": false, "error": ..., "code": ...}` body with the
class' status code (see `gymbook.main.domain_error_handler`).
"""

from typing import Any, Dict, Optional

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainError(Exception):
    """Base class for all business errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """Malformed input: missing date/time, end before start, no weekday selected."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(DomainError):
    """Coach is missing settings the engine needs (default room)."""

    status_code = HTTP_422_UNPROCESSABLE


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    """A session already exists for (coach, start time), or a duplicate booking."""

    status_code = status.HTTP_409_CONFLICT


class CapacityExceededError(ConflictError):
    """Session is full."""


class InvalidTransitionError(ConflictError):
    """State machine refused the requested status change."""


class UnauthorizedError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN

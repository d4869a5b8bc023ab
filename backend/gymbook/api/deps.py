"""
Shared route dependencies: current user, role checks, cron secret.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import get_settings
from gymbook.core.exceptions import ForbiddenError, UnauthorizedError
from gymbook.db.session import get_db
from gymbook.models.user import Role, User
from gymbook.services.auth_service import get_user_from_token

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise UnauthorizedError("Not authenticated", code="not_authenticated")
    return await get_user_from_token(db, credentials.credentials)


def require_role(user: User, *roles: str) -> User:
    if user.role not in roles:
        raise ForbiddenError(
            f"This action requires one of the roles: {', '.join(roles)}",
            code="forbidden_role",
        )
    return user


async def get_current_coach(user: User = Depends(get_current_user)) -> User:
    return require_role(user, *Role.COACHING)


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Scheduled jobs authenticate with `Authorization: Bearer <CRON_SECRET>`."""
    expected = f"Bearer {settings.CRON_SECRET}"
    if not settings.CRON_SECRET or not authorization or not hmac.compare_digest(
        authorization.encode("utf-8"), expected.encode("utf-8")
    ):
        raise UnauthorizedError("Invalid cron secret", code="invalid_cron_secret")

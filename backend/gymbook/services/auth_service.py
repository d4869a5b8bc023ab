"""
Authentication service handling user registration and login.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.models.user import User
from gymbook.schemas.user import UserCreate, UserLogin
from gymbook.core.exceptions import ConflictError, ForbiddenError, UnauthorizedError
from gymbook.core.security import hash_password, verify_password, create_access_token, decode_access_token
from gymbook.core.logging import get_logger

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if the email already exists.
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise ConflictError("Email already registered", code="email_exists")

    user = User(
        email=user_data.email,
        name=user_data.name,
        role=user_data.role,
        hashed_password=hash_password(user_data.password),
    )
    db.add(user)
    await db.commit()

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise UnauthorizedError("Invalid email or password", code="invalid_credentials")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated", code="account_inactive")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token


async def get_user_from_token(db: AsyncSession, token: Optional[str]) -> User:
    """Resolve a bearer token to an active user."""
    payload = decode_access_token(token) if token else None
    subject = payload.get("sub") if payload else None
    if subject is None or not str(subject).isdigit():
        raise UnauthorizedError("Could not validate credentials", code="invalid_token")

    user = await db.get(User, int(subject))
    if user is None or not user.is_active:
        raise UnauthorizedError("Could not validate credentials", code="invalid_token")
    return user

"""
Authentication service handling user registration, login and logout.
"""

import re

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.config import get_settings
from labbook.core.exceptions import ConflictError, UnauthenticatedError, ValidationError
from labbook.core.logging import get_logger
from labbook.core.security import create_access_token, hash_password, verify_password
from labbook.models.session import AuthSession
from labbook.models.user import User
from labbook.schemas.user import Token, UserLogin, UserRegister, UserResponse

logger = get_logger(__name__)

PASSWORD_REQUIREMENTS = (
    "Password must be at least {min_length} characters long and contain at least "
    "one uppercase letter, one lowercase letter, and one number"
)


def check_password_strength(password: str) -> None:
    min_length = get_settings().PASSWORD_MIN_LENGTH
    strong = (
        len(password) >= min_length
        and re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
    )
    if not strong:
        raise ValidationError(PASSWORD_REQUIREMENTS.format(min_length=min_length), code="WeakPassword")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def register_user(db: AsyncSession, user_data: UserRegister, is_admin: bool = False) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if the email is already registered.
    """
    check_password_strength(user_data.password)
    email = normalize_email(user_data.email)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise ConflictError("User already exists with this email", code="EmailTaken")

    user = User(
        name=user_data.name,
        email=email,
        hashed_password=hash_password(user_data.password),
        is_admin=is_admin,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email, is_admin=is_admin)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> Token:
    """
    Verify credentials, persist a session and return its JWT.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == normalize_email(login_data.email)))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise UnauthenticatedError("Invalid email or password")

    token, expires_at = create_access_token(data={"sub": user.id})
    db.add(AuthSession(user_id=user.id, token=token, expires_at=expires_at))
    await db.flush()

    logger.info("user_logged_in", user_id=user.id)
    return Token(access_token=token, expires_at=expires_at, user=UserResponse.model_validate(user))


async def logout(db: AsyncSession, token: str) -> None:
    """Revoke the session behind ``token``; unknown tokens are ignored."""
    result = await db.execute(delete(AuthSession).where(AuthSession.token == token))
    logger.info("user_logged_out", sessions_revoked=result.rowcount)

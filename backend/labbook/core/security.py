"""
Password hashing, JWT issuance and the request principal dependency.

A token is only honoured while its session row exists and has not expired,
which is what makes logout a real server-side revocation.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.config import get_settings
from labbook.core.exceptions import UnauthenticatedError
from labbook.core.logging import bind_principal, get_logger
from labbook.db.session import get_db
from labbook.models.session import AuthSession
from labbook.models.user import User

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""

    id: str
    email: str
    is_admin: bool = False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> tuple[str, datetime]:
    """Sign a JWT and return it with its expiry instant."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.TOKEN_EXPIRY_DAYS))
    # jti keeps two logins in the same second from minting the same token.
    to_encode = {**data, "exp": expire, "jti": uuid.uuid4().hex}
    token = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, expire


def decode_access_token(token: str) -> str:
    """Return the user id carried in ``sub`` or raise UnauthenticatedError."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthenticatedError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Invalid or expired token")
    return user_id


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthenticatedError("No authentication token provided")

    token = credentials.credentials
    user_id = decode_access_token(token)

    result = await db.execute(select(AuthSession).where(AuthSession.token == token))
    session = result.scalar_one_or_none()

    if session is None or session.user_id != user_id:
        raise UnauthenticatedError("Session expired or revoked. Please log in again.")

    if _as_aware(session.expires_at) < datetime.now(timezone.utc):
        await db.execute(delete(AuthSession).where(AuthSession.token == token))
        # The request fails, so the unit of work would roll the delete back.
        await db.commit()
        logger.info("session_expired", user_id=user_id)
        raise UnauthenticatedError("Session expired or revoked. Please log in again.")

    user = await db.get(User, session.user_id)
    if user is None:
        raise UnauthenticatedError("Session expired or revoked. Please log in again.")
    bind_principal(user.id, user.is_admin)
    return Principal(id=user.id, email=user.email, is_admin=user.is_admin)


async def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    return credentials.credentials if credentials else None

"""
User administration: profile reads, listing, deletion and admin toggling.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.exceptions import ForbiddenError, NotFoundError
from labbook.core.logging import get_logger
from labbook.core.security import Principal
from labbook.models.user import User
from labbook.schemas.user import UserCreate
from labbook.services import auth_service
from labbook.services.authorization import Operation, require

logger = get_logger(__name__)


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def get_user(db: AsyncSession, principal: Principal, user_id: str) -> User:
    """A user's profile. The user themself or an admin."""
    require(principal, Operation.VIEW_USER, user_id)
    return await _get_user(db, user_id)


async def list_users(db: AsyncSession, principal: Principal) -> list[User]:
    require(principal, Operation.LIST_USERS)
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def create_user(db: AsyncSession, principal: Principal, data: UserCreate) -> User:
    """Admin-created account, optionally with admin rights."""
    require(principal, Operation.CREATE_USER)
    return await auth_service.register_user(db, data, is_admin=data.is_admin)


async def delete_user(db: AsyncSession, principal: Principal, user_id: str) -> None:
    """Remove a user with their sessions and bookings. Never yourself."""
    require(principal, Operation.DELETE_USER)
    if user_id == principal.id:
        raise ForbiddenError("You cannot delete your own account")

    user = await _get_user(db, user_id)
    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", user_id=user_id, deleted_by=principal.id)


async def toggle_admin(db: AsyncSession, principal: Principal, user_id: str) -> User:
    require(principal, Operation.TOGGLE_ADMIN)
    if user_id == principal.id:
        raise ForbiddenError("You cannot change your own admin rights")

    user = await _get_user(db, user_id)
    user.is_admin = not user.is_admin
    await db.flush()
    await db.refresh(user)

    logger.info("user_admin_toggled", user_id=user.id, is_admin=user.is_admin, changed_by=principal.id)
    return user

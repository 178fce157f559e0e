"""
User endpoints: registration, login/logout, profiles and admin management.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.security import Principal, get_current_principal, get_current_token
from labbook.db.session import get_db
from labbook.schemas.booking import BookingResponse
from labbook.schemas.user import (
    MessageResponse,
    Token,
    UserCreate,
    UserDetailResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from labbook.services import auth_service, user_service
from labbook.services.booking_service import list_bookings_for_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Register a new (non-admin) user account."""
    return await auth_service.register_user(db, user_data)


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a session-backed JWT."""
    return await auth_service.authenticate_user(db, login_data)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: Optional[str] = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the current session. Safe to call without a token."""
    if token:
        await auth_service.logout(db, token)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, principal, principal.id)


@router.get("", response_model=list[UserResponse])
async def list_users(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """All accounts. Admin only."""
    return await user_service.list_users(db, principal)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Create an account, optionally with admin rights. Admin only."""
    return await user_service.create_user(db, principal, user_data)


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """A user's profile with their bookings. Self or admin."""
    user = await user_service.get_user(db, principal, user_id)
    bookings = await list_bookings_for_user(db, principal, user_id)
    return UserDetailResponse(
        **UserResponse.model_validate(user).model_dump(),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, principal, user_id)
    return MessageResponse(message="User deleted successfully")


@router.patch("/{user_id}/toggle-admin", response_model=UserResponse)
async def toggle_admin(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.toggle_admin(db, principal, user_id)

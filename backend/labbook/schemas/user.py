"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from labbook.schemas.base import CamelModel
from labbook.schemas.booking import BookingResponse


class UserRegister(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserCreate(UserRegister):
    is_admin: bool = False


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    is_admin: bool
    created_at: datetime


class UserDetailResponse(UserResponse):
    bookings: list[BookingResponse] = []


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class MessageResponse(CamelModel):
    status: str = "success"
    message: str

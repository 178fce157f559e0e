"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional

from labbook.models.enums import BookingStatus
from labbook.schemas.base import CamelModel


class BookingCreate(CamelModel):
    server_id: str
    # Defaults to the caller; only admins may book for someone else.
    user_id: Optional[str] = None
    start_date: date
    end_date: date
    purpose: str


class BookingExtend(CamelModel):
    new_end_date: date


class BookingServer(CamelModel):
    id: str
    name: str
    location: str


class BookingUser(CamelModel):
    id: str
    name: str
    email: str


class BookingResponse(CamelModel):
    id: str
    server_id: str
    user_id: str
    start_date: date
    end_date: date
    purpose: str
    status: BookingStatus
    days_booked: int
    renewal_notification_sent: bool
    created_at: datetime
    server: Optional[BookingServer] = None
    user: Optional[BookingUser] = None

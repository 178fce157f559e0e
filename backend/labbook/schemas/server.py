"""
Pydantic schemas for server inventory request/response validation.
"""

from typing import Literal, Optional

from pydantic import Field

from labbook.models.enums import ServerStatus
from labbook.schemas.base import CamelModel
from labbook.schemas.booking import BookingResponse

# "booked" is derived from bookings and can never be written.
AdminStatus = Literal["available", "maintenance", "offline"]


class Specifications(CamelModel):
    cpu: str = Field(..., min_length=1, max_length=255)
    memory: str = Field(..., min_length=1, max_length=255)
    storage: str = Field(..., min_length=1, max_length=255)
    gpu: Optional[str] = Field(None, max_length=255)


class SpecificationsUpdate(CamelModel):
    cpu: Optional[str] = Field(None, min_length=1, max_length=255)
    memory: Optional[str] = Field(None, min_length=1, max_length=255)
    storage: Optional[str] = Field(None, min_length=1, max_length=255)
    gpu: Optional[str] = Field(None, max_length=255)


class ServerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    specifications: Specifications
    location: str = Field(..., min_length=1, max_length=255)
    status: AdminStatus = "available"


class ServerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    specifications: Optional[SpecificationsUpdate] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[AdminStatus] = None


class ServerResponse(CamelModel):
    id: str
    name: str
    specifications: Specifications
    location: str
    status: ServerStatus
    current_booking: Optional[BookingResponse] = None


class ServerDetailResponse(ServerResponse):
    bookings: list[BookingResponse] = []

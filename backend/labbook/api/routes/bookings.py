"""
Booking endpoints with conflict-safe server reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.security import Principal, get_current_principal
from labbook.db.session import get_db
from labbook.schemas.booking import BookingCreate, BookingExtend, BookingResponse
from labbook.services import booking_service
from labbook.services.cache_service import invalidate_server_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("", response_model=list[BookingResponse])
async def list_all_bookings(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Every booking, newest first. Admin only."""
    return await booking_service.list_bookings(db, principal)


@router.get("/user/{user_id}", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """A user's bookings. Self or admin."""
    return await booking_service.list_bookings_for_user(db, principal, user_id)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve a server for a date range.

    Overlapping an active or pending-renewal booking on the same server
    returns 409. Concurrent overlapping requests are serialised through the
    server's version counter, so at most one of them succeeds.
    """
    booking = await booking_service.create_booking(db, principal, booking_data)
    await db.commit()
    await invalidate_server_cache()
    return booking


@router.put("/{booking_id}/extend", response_model=BookingResponse)
async def extend_booking(
    booking_id: str,
    extend_data: BookingExtend,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.extend_booking(db, principal, booking_id, extend_data.new_end_date)
    await db.commit()
    await invalidate_server_cache()
    return booking


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; the server frees up immediately."""
    booking = await booking_service.cancel_booking(db, principal, booking_id)
    await db.commit()
    await invalidate_server_cache()
    return booking

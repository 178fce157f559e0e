"""
Effective server status, derived on read.

Priority:
  1. maintenance / offline stored by an operator win unconditionally
  2. a non-terminal booking whose range contains today -> booked
  3. otherwise available

Pure and read-only: nothing here writes to the server or its bookings.
"""

from datetime import date
from typing import Iterable, Optional

from labbook.models.enums import NON_TERMINAL_STATUSES, ServerStatus
from labbook.services.conflict_detector import BookingLike
from labbook.services.date_utils import utc_today


def current_booking(
    server_id: str,
    bookings: Iterable[BookingLike],
    today: Optional[date] = None,
) -> Optional[BookingLike]:
    """The non-terminal booking on ``server_id`` covering today, if any."""
    today = today or utc_today()
    for booking in bookings:
        if (
            booking.server_id == server_id
            and booking.status in NON_TERMINAL_STATUSES
            and booking.start_date <= today <= booking.end_date
        ):
            return booking
    return None


def effective_status(server, bookings: Iterable[BookingLike], today: Optional[date] = None) -> ServerStatus:
    admin_status = ServerStatus(server.status)
    if admin_status in (ServerStatus.MAINTENANCE, ServerStatus.OFFLINE):
        return admin_status

    if current_booking(server.id, bookings, today) is not None:
        return ServerStatus.BOOKED
    return ServerStatus.AVAILABLE


def resolve_server_status(server, bookings: Optional[Iterable[BookingLike]] = None, today: Optional[date] = None) -> ServerStatus:
    """Status for a loaded server; defaults to the server's own bookings."""
    if bookings is None:
        bookings = server.bookings
    return effective_status(server, bookings, today)

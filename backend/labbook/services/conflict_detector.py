"""
Overlap detection between a proposed range and a server's bookings.

Two ranges overlap iff ``start < other.end and end > other.start``. The
comparison is strict both ways, so a booking may start on the day another
one ends.

Only non-terminal bookings (active, pending_renewal) occupy a server;
cancelled and completed rows are history and never conflict.
"""

from datetime import date
from typing import Iterable, Optional, Protocol

from labbook.models.enums import NON_TERMINAL_STATUSES


class BookingLike(Protocol):
    id: str
    server_id: str
    start_date: date
    end_date: date
    status: str


def overlaps(start: date, end: date, other_start: date, other_end: date) -> bool:
    return start < other_end and end > other_start


def find_conflict(
    server_id: str,
    start: date,
    end: date,
    bookings: Iterable[BookingLike],
    exclude_booking_id: Optional[str] = None,
) -> Optional[BookingLike]:
    """Return the first booking on ``server_id`` overlapping [start, end], if any."""
    for booking in bookings:
        if booking.server_id != server_id:
            continue
        if booking.status not in NON_TERMINAL_STATUSES:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if overlaps(start, end, booking.start_date, booking.end_date):
            return booking
    return None


def has_conflict(
    server_id: str,
    start: date,
    end: date,
    bookings: Iterable[BookingLike],
    exclude_booking_id: Optional[str] = None,
) -> bool:
    return find_conflict(server_id, start, end, bookings, exclude_booking_id) is not None

"""
Status vocabularies shared by models, schemas and services.
"""

import enum


class ServerStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"  # derived on read, never stored
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


class BookingStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING_RENEWAL = "pending_renewal"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses an operator may store on a server row.
ADMIN_SERVER_STATUSES = (
    ServerStatus.AVAILABLE.value,
    ServerStatus.MAINTENANCE.value,
    ServerStatus.OFFLINE.value,
)

# Bookings in these statuses occupy their server and take part in conflict checks.
NON_TERMINAL_STATUSES = (
    BookingStatus.ACTIVE.value,
    BookingStatus.PENDING_RENEWAL.value,
)

"""
Calendar arithmetic for bookings.

Booking ranges are calendar dates. A day count is the whole number of days
between start and end, rounded up, so a range starting and ending on the
same date is 0 days and each extra calendar day adds exactly one.
"""

import math
from datetime import date, datetime, timezone
from typing import Optional, Union

from labbook.core.exceptions import InvalidDateRange

SECONDS_PER_DAY = 60 * 60 * 24

DateLike = Union[date, datetime]

PAST_START_DATE = "PastStartDate"
INVALID_RANGE = "InvalidRange"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def days_booked(start: DateLike, end: DateLike) -> int:
    """ceil((end - start) / 1 day). Negative when end precedes start."""
    delta = end - start
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def days_remaining(end: date, today: date) -> int:
    """Days left until ``end``, never below zero."""
    return max(0, days_booked(today, end))


def validate_range(start: date, end: date, today: date) -> Optional[InvalidDateRange]:
    """Check a new booking range; returns the failure instead of raising it.

    Only used on creation. Extensions compare the new end against the old
    end, not against today.
    """
    if start < today:
        return InvalidDateRange("Start date cannot be in the past", reason=PAST_START_DATE)
    if end <= start:
        return InvalidDateRange("End date must be after start date", reason=INVALID_RANGE)
    return None

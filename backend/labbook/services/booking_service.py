"""
Booking lifecycle: create, extend and cancel server reservations.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two users book the same server for overlapping dates at the same moment.
  Both read the server's bookings, both see no overlap, both insert.
  Result: Double booking.

Solution:
  Every write that claims server time bumps the server's `version` column.

  1. Read the server and its current version
  2. Read the server's non-terminal bookings and run the overlap check
  3. UPDATE servers SET version = version + 1
     WHERE id = :server_id AND version = :seen_version
  4. If rows_affected == 0, another transaction claimed time on this server
     between steps 1 and 3 -> roll back and retry from step 1
  5. Insert / update the booking in the same transaction

  Under READ COMMITTED the losing UPDATE blocks on the winner's row lock and
  then re-checks the version predicate, so at most one of two overlapping
  requests survives; the retry re-reads bookings and sees the winner's row.

  Cancellation only releases time and never needs the claim.

Server availability is never written here: "booked" is derived on read by
the status resolver, so there is no cached status to reconcile.
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.config import get_settings
from labbook.core.exceptions import ConflictError, NotFoundError, ValidationError
from labbook.core.logging import get_logger
from labbook.core.metrics import (
    booking_cancellations,
    booking_latency,
    record_booking_attempt,
    record_db_retry,
)
from labbook.core.security import Principal
from labbook.models.booking import Booking
from labbook.models.enums import NON_TERMINAL_STATUSES, BookingStatus
from labbook.models.server import Server
from labbook.models.user import User
from labbook.schemas.booking import BookingCreate
from labbook.services.authorization import Operation, require
from labbook.services.conflict_detector import find_conflict
from labbook.services.date_utils import days_booked, utc_today, validate_range

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3

SERVER_ALREADY_BOOKED = "ServerAlreadyBooked"


async def _get_server(db: AsyncSession, server_id: str) -> Server:
    result = await db.execute(
        select(Server)
        .where(Server.id == server_id)
        .execution_options(populate_existing=True)
    )
    server = result.scalar_one_or_none()
    if not server:
        raise NotFoundError(f"Server {server_id} not found")
    return server


async def _get_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def _occupying_bookings(db: AsyncSession, server_id: str) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.server_id == server_id,
            Booking.status.in_(NON_TERMINAL_STATUSES),
        )
    )
    return list(result.scalars().all())


async def _claim_server(db: AsyncSession, server_id: str, seen_version: int) -> bool:
    """Bump the server version only if nobody else has since we read it."""
    result = await db.execute(
        update(Server)
        .where(Server.id == server_id, Server.version == seen_version)
        .values(version=Server.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _already_booked(server_id: str, conflict: Booking) -> ConflictError:
    logger.warning(
        "booking_conflict",
        server_id=server_id,
        conflicting_booking_id=conflict.id,
        existing_start=str(conflict.start_date),
        existing_end=str(conflict.end_date),
    )
    return ConflictError("Server is already booked for the selected dates", code=SERVER_ALREADY_BOOKED)


async def create_booking(
    db: AsyncSession,
    principal: Principal,
    data: BookingCreate,
    today: Optional[date] = None,
) -> Booking:
    """
    Reserve a server for [start_date, end_date] in the `active` state.
    Retries up to MAX_RETRY_ATTEMPTS when a concurrent booking claims the server.
    """
    owner_id = data.user_id or principal.id
    require(principal, Operation.CREATE_BOOKING, owner_id)

    error = validate_range(data.start_date, data.end_date, today or utc_today())
    if error:
        record_booking_attempt("invalid")
        raise error

    owner = await db.get(User, owner_id)
    if not owner:
        raise NotFoundError(f"User {owner_id} not found")

    with booking_latency.time():
        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            server = await _get_server(db, data.server_id)
            seen_version = server.version

            existing = await _occupying_bookings(db, server.id)
            conflict = find_conflict(server.id, data.start_date, data.end_date, existing)
            if conflict:
                record_booking_attempt("conflict")
                raise _already_booked(server.id, conflict)

            purpose = (data.purpose or "").strip()
            if not purpose:
                record_booking_attempt("invalid")
                raise ValidationError("Purpose is required", code="PurposeRequired")

            if not await _claim_server(db, server.id, seen_version):
                logger.info(
                    "booking_retry",
                    server_id=server.id,
                    attempt=attempt,
                    reason="version_conflict",
                )
                record_db_retry()
                await db.rollback()
                if attempt == MAX_RETRY_ATTEMPTS:
                    record_booking_attempt("conflict")
                    raise ConflictError(
                        "Booking failed due to concurrent requests for this server. Please try again.",
                        code=SERVER_ALREADY_BOOKED,
                    )
                # Rollback expired the owner row; reload it for the next attempt.
                owner = await db.get(User, owner_id)
                continue

            booking = Booking(
                server=server,
                user=owner,
                start_date=data.start_date,
                end_date=data.end_date,
                purpose=purpose,
                status=BookingStatus.ACTIVE.value,
                days_booked=days_booked(data.start_date, data.end_date),
                renewal_notification_sent=False,
            )
            db.add(booking)
            await db.flush()
            await db.refresh(booking)

            record_booking_attempt("success")
            logger.info(
                "booking_created",
                booking_id=booking.id,
                server_id=server.id,
                user_id=owner_id,
                requested_by=principal.id,
                start_date=str(booking.start_date),
                end_date=str(booking.end_date),
                days_booked=booking.days_booked,
                attempt=attempt,
            )
            return booking

    # Should not reach here, but just in case
    record_booking_attempt("error")
    raise ConflictError("Booking failed unexpectedly", code=SERVER_ALREADY_BOOKED)


async def extend_booking(
    db: AsyncSession,
    principal: Principal,
    booking_id: str,
    new_end_date: date,
) -> Booking:
    """
    Move a booking's end date later.

    days_booked is recomputed from the original start, the renewal flag is
    cleared and a pending_renewal booking goes back to active.
    """
    booking = await _get_booking(db, booking_id)
    require(principal, Operation.EXTEND_BOOKING, booking.user_id)

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        if booking.status not in NON_TERMINAL_STATUSES:
            record_booking_attempt("invalid", operation="extend")
            raise ValidationError(
                f"Cannot extend a {booking.status} booking",
                code="BookingNotActive",
            )
        if new_end_date <= booking.end_date:
            record_booking_attempt("invalid", operation="extend")
            raise ValidationError(
                "New end date must be after the current end date",
                code="InvalidExtension",
            )

        server = await _get_server(db, booking.server_id)
        seen_version = server.version

        existing = await _occupying_bookings(db, server.id)
        conflict = find_conflict(
            server.id,
            booking.start_date,
            new_end_date,
            existing,
            exclude_booking_id=booking.id,
        )
        if conflict:
            record_booking_attempt("conflict", operation="extend")
            raise _already_booked(server.id, conflict)

        if not await _claim_server(db, server.id, seen_version):
            logger.info(
                "booking_extend_retry",
                booking_id=booking_id,
                attempt=attempt,
                reason="version_conflict",
            )
            record_db_retry()
            await db.rollback()
            if attempt == MAX_RETRY_ATTEMPTS:
                record_booking_attempt("conflict", operation="extend")
                raise ConflictError(
                    "Extension failed due to concurrent requests for this server. Please try again.",
                    code=SERVER_ALREADY_BOOKED,
                )
            booking = await _get_booking(db, booking_id)
            continue

        previous_end = booking.end_date
        booking.end_date = new_end_date
        booking.days_booked = days_booked(booking.start_date, new_end_date)
        booking.renewal_notification_sent = False
        booking.status = BookingStatus.ACTIVE.value
        await db.flush()
        await db.refresh(booking)

        record_booking_attempt("success", operation="extend")
        logger.info(
            "booking_extended",
            booking_id=booking.id,
            server_id=booking.server_id,
            previous_end=str(previous_end),
            new_end=str(new_end_date),
            days_booked=booking.days_booked,
        )
        return booking

    raise ConflictError("Extension failed unexpectedly", code=SERVER_ALREADY_BOOKED)


async def cancel_booking(
    db: AsyncSession,
    principal: Principal,
    booking_id: str,
) -> Booking:
    """
    Cancel a booking. Cancelling an already-cancelled booking is a no-op.
    """
    booking = await _get_booking(db, booking_id)
    require(principal, Operation.CANCEL_BOOKING, booking.user_id)

    if booking.status == BookingStatus.CANCELLED.value:
        logger.info("booking_cancel_noop", booking_id=booking.id)
        return booking

    if booking.status == BookingStatus.COMPLETED.value:
        raise ValidationError("Cannot cancel a completed booking", code="BookingNotActive")

    booking.status = BookingStatus.CANCELLED.value
    await db.flush()

    remaining = await db.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            Booking.server_id == booking.server_id,
            Booking.status.in_(NON_TERMINAL_STATUSES),
            Booking.id != booking.id,
        )
    )
    await db.refresh(booking)
    booking_cancellations.inc()

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        server_id=booking.server_id,
        cancelled_by=principal.id,
        server_released=remaining == 0,
    )
    return booking


async def list_bookings(db: AsyncSession, principal: Principal) -> list[Booking]:
    """Every booking, newest first. Admin only."""
    require(principal, Operation.LIST_BOOKINGS)
    result = await db.execute(select(Booking).order_by(Booking.created_at.desc()))
    return list(result.scalars().all())


async def list_bookings_for_user(db: AsyncSession, principal: Principal, user_id: str) -> list[Booking]:
    """A user's bookings, newest first. The user themself or an admin."""
    require(principal, Operation.LIST_USER_BOOKINGS, user_id)
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.scalars().all())


def needs_renewal_notification(booking: Booking, threshold: Optional[int] = None) -> bool:
    """Long bookings get one renewal reminder until they are extended."""
    if threshold is None:
        threshold = get_settings().RENEWAL_THRESHOLD_DAYS
    return booking.days_booked >= threshold and not booking.renewal_notification_sent


async def complete_expired_bookings(db: AsyncSession, today: Optional[date] = None) -> int:
    """Move non-terminal bookings whose end date has passed to `completed`."""
    today = today or utc_today()
    result = await db.execute(
        select(Booking).where(
            Booking.status.in_(NON_TERMINAL_STATUSES),
            Booking.end_date < today,
        )
    )
    expired = list(result.scalars().all())
    for booking in expired:
        booking.status = BookingStatus.COMPLETED.value
    await db.flush()

    if expired:
        logger.info("bookings_completed", count=len(expired), today=str(today))
    return len(expired)


async def mark_pending_renewals(
    db: AsyncSession,
    today: Optional[date] = None,
    window_days: Optional[int] = None,
) -> list[Booking]:
    """Flag active bookings ending within the window as `pending_renewal`."""
    today = today or utc_today()
    if window_days is None:
        window_days = get_settings().DIGEST_EXPIRY_WINDOW_DAYS

    result = await db.execute(
        select(Booking).where(
            Booking.status == BookingStatus.ACTIVE.value,
            Booking.end_date >= today,
            Booking.end_date <= today + timedelta(days=window_days),
        )
    )
    expiring = list(result.scalars().all())
    for booking in expiring:
        booking.status = BookingStatus.PENDING_RENEWAL.value
    await db.flush()

    if expiring:
        logger.info("bookings_pending_renewal", count=len(expiring), window_days=window_days)
    return expiring

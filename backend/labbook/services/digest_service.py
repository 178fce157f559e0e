"""
Weekly email digest.

Triggered externally (cron every Monday 08:00 UTC through
``python -m labbook.digest``) or by an admin from the API. One user's
delivery failure is logged and counted; it never aborts the run.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.logging import get_logger
from labbook.core.metrics import record_digest_email
from labbook.models.booking import Booking
from labbook.models.enums import NON_TERMINAL_STATUSES
from labbook.models.user import User
from labbook.schemas.digest import DigestResult
from labbook.services.booking_service import (
    complete_expired_bookings,
    mark_pending_renewals,
    needs_renewal_notification,
)
from labbook.services.date_utils import days_remaining, utc_today
from labbook.services.email_service import BookingSummary, Mailer, UserDigest, is_email_configured
from labbook.services.server_service import count_available_servers

logger = get_logger(__name__)


async def _bookings_by_user(db: AsyncSession) -> dict[str, list[Booking]]:
    result = await db.execute(
        select(Booking)
        .where(Booking.status.in_(NON_TERMINAL_STATUSES))
        .order_by(Booking.end_date.asc())
    )
    grouped: dict[str, list[Booking]] = {}
    for booking in result.scalars().all():
        grouped.setdefault(booking.user_id, []).append(booking)
    return grouped


def build_user_digest(user: User, bookings: list[Booking], available: int, today: date) -> UserDigest:
    return UserDigest(
        name=user.name,
        email=user.email,
        active_bookings=[
            BookingSummary(
                server_name=b.server.name,
                start_date=b.start_date,
                end_date=b.end_date,
                days_remaining=days_remaining(b.end_date, today),
                purpose=b.purpose,
                status=b.status,
                renewal_due=needs_renewal_notification(b),
            )
            for b in bookings
        ],
        total_servers_available=available,
    )


async def run_weekly_digest(
    db: AsyncSession,
    mailer: Optional[Mailer] = None,
    today: Optional[date] = None,
) -> DigestResult:
    mailer = mailer or Mailer()
    if not mailer.settings.email_configured:
        logger.warning("digest_skipped", reason="smtp_not_configured")
        return DigestResult()

    today = today or utc_today()
    logger.info("digest_started", today=str(today))

    # Housekeeping first so the digest reflects what is really still running.
    await complete_expired_bookings(db, today)
    await mark_pending_renewals(db, today)

    users = list((await db.execute(select(User).order_by(User.email.asc()))).scalars().all())
    bookings = await _bookings_by_user(db)
    available = await count_available_servers(db, today)

    sent = errors = 0
    for user in users:
        user_bookings = bookings.get(user.id, [])
        digest = build_user_digest(user, user_bookings, available, today)
        try:
            # Everyone gets a digest, even with no bookings.
            await mailer.send_weekly_digest(digest, today)
        except Exception as e:
            logger.error("digest_send_failed", email=user.email, error=str(e))
            record_digest_email(sent=False)
            errors += 1
            continue

        record_digest_email(sent=True)
        sent += 1
        for booking in user_bookings:
            if needs_renewal_notification(booking):
                booking.renewal_notification_sent = True

    await db.flush()

    result = DigestResult(sent=sent, skipped=len(users) - sent - errors, errors=errors)
    logger.info("digest_completed", **result.model_dump())
    return result

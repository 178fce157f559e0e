"""
SMTP delivery and Jinja2 rendering for the weekly digest and test emails.

smtplib is blocking, so every send runs in Starlette's threadpool to keep
the event loop free.
"""

import smtplib
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from fastapi.templating import Jinja2Templates
from jinja2 import Environment, FileSystemLoader
from starlette.concurrency import run_in_threadpool

from labbook.core.config import Settings, get_settings
from labbook.core.exceptions import ValidationError
from labbook.core.logging import get_logger

logger = get_logger(__name__)

SENDER_NAME = "Lab Booking System"
DIGEST_SCHEDULE = "Every Monday at 08:00 UTC"

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(env=Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=True))


@dataclass
class BookingSummary:
    server_name: str
    start_date: date
    end_date: date
    days_remaining: int
    purpose: str
    status: str
    renewal_due: bool = False

    @property
    def expiring(self) -> bool:
        return self.days_remaining <= get_settings().DIGEST_EXPIRY_WINDOW_DAYS


@dataclass
class UserDigest:
    name: str
    email: str
    active_bookings: list[BookingSummary] = field(default_factory=list)
    total_servers_available: int = 0

    @property
    def expiring_bookings(self) -> list[BookingSummary]:
        return [b for b in self.active_bookings if b.expiring]

    @property
    def renewal_bookings(self) -> list[BookingSummary]:
        return [b for b in self.active_bookings if b.renewal_due]


def is_email_configured(settings: Optional[Settings] = None) -> bool:
    return (settings or get_settings()).email_configured


def ensure_email_configured(settings: Optional[Settings] = None) -> None:
    if not is_email_configured(settings):
        raise ValidationError(
            "SMTP not configured. Set SMTP_HOST, SMTP_USER and SMTP_PASS.",
            code="EmailNotConfigured",
        )


def render_digest_html(digest: UserDigest, today: date, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return templates.get_template("email/weekly_digest.html").render(
        digest=digest,
        today=today,
        expiring=digest.expiring_bookings,
        renewals=digest.renewal_bookings,
        app_url=settings.FRONTEND_URL,
        from_email=settings.SMTP_FROM or settings.SMTP_USER or "noreply@lab-booking.com",
    )


def render_test_email_html(sent_at: datetime) -> str:
    return templates.get_template("email/test_email.html").render(
        schedule=DIGEST_SCHEDULE,
        sent_at=sent_at.isoformat(),
    )


class Mailer:
    """Thin SMTP sender. STARTTLS unless the port is the implicit-TLS 465."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def sender(self) -> str:
        return self.settings.SMTP_FROM or self.settings.SMTP_USER

    def _build(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f'"{SENDER_NAME}" <{self.sender}>'
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        s = self.settings
        if s.SMTP_PORT == 465:
            with smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, timeout=30) as smtp:
                smtp.login(s.SMTP_USER, s.SMTP_PASS)
                smtp.send_message(message)
        else:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=30) as smtp:
                smtp.starttls()
                smtp.login(s.SMTP_USER, s.SMTP_PASS)
                smtp.send_message(message)

    async def send(self, to: str, subject: str, html: str) -> None:
        if not self.settings.email_configured:
            raise RuntimeError("SMTP_HOST, SMTP_USER, and SMTP_PASS must be set to send emails")
        await run_in_threadpool(self._send_sync, self._build(to, subject, html))

    async def send_weekly_digest(self, digest: UserDigest, today: date) -> None:
        subject = f"Your Weekly Lab Digest - {today.strftime('%b %d')}"
        await self.send(digest.email, subject, render_digest_html(digest, today, self.settings))
        logger.info("digest_sent", email=digest.email, bookings=len(digest.active_bookings))

    async def send_test_email(self, to: str) -> None:
        html = render_test_email_html(datetime.now(timezone.utc))
        await self.send(to, "Lab Booking - Email Test", html)
        logger.info("test_email_sent", email=to)

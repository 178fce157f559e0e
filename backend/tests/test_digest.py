"""
Tests for the weekly digest job and the admin email endpoints.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from labbook.api.routes.admin import get_mailer
from labbook.core.config import Settings
from labbook.main import app
from labbook.services.digest_service import run_weekly_digest
from labbook.services.email_service import (
    BookingSummary,
    Mailer,
    UserDigest,
    render_digest_html,
    render_test_email_html,
)

TODAY = date(2024, 1, 8)


def smtp_settings() -> Settings:
    return Settings(SMTP_HOST="smtp.example.com", SMTP_USER="bot@example.com", SMTP_PASS="secret")


class RecordingMailer(Mailer):
    """Captures messages instead of talking to SMTP; can fail for chosen recipients."""

    def __init__(self, settings=None, fail_for=()):
        super().__init__(settings or smtp_settings())
        self.fail_for = set(fail_for)
        self.sent = []

    async def send(self, to: str, subject: str, html: str) -> None:
        if to in self.fail_for:
            raise ConnectionError(f"refused for {to}")
        self.sent.append((to, subject, html))


@pytest.mark.asyncio
async def test_digest_skipped_without_smtp(db_session, test_user):
    mailer = RecordingMailer(settings=Settings(SMTP_HOST="", SMTP_USER="", SMTP_PASS=""))
    result = await run_weekly_digest(db_session, mailer, today=TODAY)
    assert (result.sent, result.skipped, result.errors) == (0, 0, 0)
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_digest_sent_to_every_user(db_session, test_user, other_user, test_server, make_booking):
    await make_booking(test_server, test_user, date(2024, 1, 5), date(2024, 1, 30), purpose="fine-tuning")

    mailer = RecordingMailer()
    result = await run_weekly_digest(db_session, mailer, today=TODAY)

    assert result.sent == 2
    assert result.errors == 0
    recipients = sorted(to for to, _, _ in mailer.sent)
    assert recipients == ["other@example.com", "test@example.com"]

    html = next(html for to, _, html in mailer.sent if to == "test@example.com")
    assert "gpu-node-01" in html
    assert "fine-tuning" in html


@pytest.mark.asyncio
async def test_one_failure_does_not_abort_run(db_session, test_user, other_user, admin_user):
    mailer = RecordingMailer(fail_for={"other@example.com"})
    result = await run_weekly_digest(db_session, mailer, today=TODAY)

    assert result.sent == 2
    assert result.errors == 1
    assert result.skipped == 0


@pytest.mark.asyncio
async def test_digest_runs_housekeeping(db_session, test_user, test_server, make_booking):
    ended = await make_booking(test_server, test_user, date(2023, 12, 20), date(2024, 1, 2))
    expiring = await make_booking(test_server, test_user, date(2024, 1, 3), date(2024, 1, 12))

    await run_weekly_digest(db_session, RecordingMailer(), today=TODAY)

    assert ended.status == "completed"
    assert expiring.status == "pending_renewal"


@pytest.mark.asyncio
async def test_renewal_reminder_flag_set_once_sent(db_session, test_user, other_user, test_server, make_booking):
    long_booking = await make_booking(
        test_server, test_user, date(2024, 1, 1), date(2024, 2, 1), purpose="protein folding"
    )
    unsent = await make_booking(test_server, other_user, date(2024, 2, 10), date(2024, 3, 10))

    mailer = RecordingMailer(fail_for={"other@example.com"})
    await run_weekly_digest(db_session, mailer, today=TODAY)

    html = next(html for to, _, html in mailer.sent if to == "test@example.com")
    assert "Renewal reminder" in html
    assert "protein folding" in html
    assert long_booking.renewal_notification_sent is True
    assert unsent.renewal_notification_sent is False


@pytest.mark.asyncio
async def test_renewal_reminder_sent_only_once(db_session, test_user, test_server, make_booking):
    await make_booking(
        test_server, test_user, date(2024, 1, 1), date(2024, 2, 1), renewal_notification_sent=True
    )

    mailer = RecordingMailer()
    await run_weekly_digest(db_session, mailer, today=TODAY)

    html = mailer.sent[0][2]
    assert "Renewal reminder" not in html
    assert "Renewal due" not in html


def test_render_digest_escapes_and_flags_expiring():
    digest = UserDigest(
        name="<Ada>",
        email="ada@example.com",
        active_bookings=[
            BookingSummary(
                server_name="gpu-node-01",
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 10),
                days_remaining=2,
                purpose="a & b",
                status="pending_renewal",
            ),
        ],
        total_servers_available=3,
    )
    html = render_digest_html(digest, TODAY, smtp_settings())
    assert "&lt;Ada&gt;" in html
    assert "a &amp; b" in html
    assert "Expires in 2 days" in html
    assert "3 servers available" in html


def test_render_digest_without_bookings():
    digest = UserDigest(name="Ada", email="ada@example.com")
    html = render_digest_html(digest, TODAY, smtp_settings())
    assert "no active bookings" in html


@pytest.mark.asyncio
async def test_email_status_admin_only(client: AsyncClient, auth_headers, admin_headers):
    assert (await client.get("/api/admin/email-status", headers=auth_headers)).status_code == 403

    response = await client.get("/api/admin/email-status", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["configured"] is False
    assert data["schedule"] == "Every Monday at 08:00 UTC"


@pytest.mark.asyncio
async def test_send_digest_unconfigured(client: AsyncClient, admin_headers):
    response = await client.post("/api/admin/send-weekly-digest", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "EmailNotConfigured"


@pytest.mark.asyncio
async def test_send_digest_from_api(client: AsyncClient, admin_headers, test_user, test_server, make_booking, today):
    await make_booking(test_server, test_user, today, today + timedelta(days=20))
    mailer = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer

    response = await client.post("/api/admin/send-weekly-digest", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"sent": 2, "skipped": 0, "errors": 0}
    assert len(mailer.sent) == 2


@pytest.mark.asyncio
async def test_send_test_email(client: AsyncClient, admin_headers):
    mailer = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer

    response = await client.post("/api/admin/send-test-email", headers=admin_headers)

    assert response.status_code == 200
    assert mailer.sent[0][0] == "admin@example.com"


def test_render_digest_marks_renewal_due():
    digest = UserDigest(
        name="Ada",
        email="ada@example.com",
        active_bookings=[
            BookingSummary(
                server_name="gpu-node-01",
                start_date=date(2024, 1, 1),
                end_date=date(2024, 2, 1),
                days_remaining=24,
                purpose="long sweep",
                status="active",
                renewal_due=True,
            ),
        ],
    )
    html = render_digest_html(digest, TODAY, smtp_settings())
    assert "Renewal reminder" in html
    assert "Renewal due" in html
    assert "Action required" not in html


def test_test_email_names_schedule():
    html = render_test_email_html(datetime(2024, 1, 8, 8, 0, tzinfo=timezone.utc))
    assert "every monday at 08:00 utc" in html
    assert "2024-01-08T08:00:00+00:00" in html

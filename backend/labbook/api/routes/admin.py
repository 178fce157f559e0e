"""
Admin endpoints for the weekly email digest.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.config import get_settings
from labbook.core.security import Principal, get_current_principal
from labbook.db.session import get_db
from labbook.schemas.digest import DigestResult, EmailStatus
from labbook.schemas.user import MessageResponse
from labbook.services.authorization import Operation, require
from labbook.services.digest_service import run_weekly_digest
from labbook.services.email_service import DIGEST_SCHEDULE, Mailer, ensure_email_configured

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_mailer() -> Mailer:
    return Mailer()


@router.get("/email-status", response_model=EmailStatus)
async def email_status(principal: Principal = Depends(get_current_principal)):
    require(principal, Operation.MANAGE_EMAIL)
    settings = get_settings()
    return EmailStatus(
        configured=settings.email_configured,
        smtp_host=settings.SMTP_HOST or None,
        smtp_user=settings.SMTP_USER or None,
        smtp_port=settings.SMTP_PORT,
        schedule=DIGEST_SCHEDULE,
    )


@router.post("/send-weekly-digest", response_model=DigestResult)
async def send_weekly_digest(
    principal: Principal = Depends(get_current_principal),
    mailer: Mailer = Depends(get_mailer),
    db: AsyncSession = Depends(get_db),
):
    """Run the weekly digest now instead of waiting for Monday."""
    require(principal, Operation.MANAGE_EMAIL)
    ensure_email_configured(mailer.settings)
    return await run_weekly_digest(db, mailer)


@router.post("/send-test-email", response_model=MessageResponse)
async def send_test_email(
    principal: Principal = Depends(get_current_principal),
    mailer: Mailer = Depends(get_mailer),
):
    """Send a test message to the calling admin's address."""
    require(principal, Operation.MANAGE_EMAIL)
    ensure_email_configured(mailer.settings)
    await mailer.send_test_email(principal.email)
    return MessageResponse(message=f"Test email sent to {principal.email}")

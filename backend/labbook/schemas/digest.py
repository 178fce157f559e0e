"""
Schemas for the weekly digest admin endpoints.
"""

from typing import Optional

from labbook.schemas.base import CamelModel


class DigestResult(CamelModel):
    sent: int = 0
    skipped: int = 0
    errors: int = 0


class EmailStatus(CamelModel):
    configured: bool
    smtp_host: Optional[str] = None
    smtp_user: Optional[str] = None
    smtp_port: int
    schedule: str

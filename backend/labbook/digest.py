"""
Entry point for the external weekly digest scheduler.

    python -m labbook.digest

Cron: ``0 8 * * 1`` (Mondays 08:00 UTC). Runs one digest in its own unit of
work and exits non-zero if the run itself fails.
"""

import asyncio
import sys

from labbook.core.logging import get_logger, setup_logging
from labbook.db.session import AsyncSessionLocal, engine
from labbook.services.digest_service import run_weekly_digest

logger = get_logger(__name__)


async def main() -> int:
    setup_logging()
    try:
        async with AsyncSessionLocal() as db:
            try:
                result = await run_weekly_digest(db)
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("digest_run_failed")
                return 1
    finally:
        await engine.dispose()

    logger.info("digest_run_finished", **result.model_dump())
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

"""Background scheduler for the daily cleanup sweep.

The scheduler shares the application's event loop; the FastAPI lifespan
starts it on startup and shuts it down on exit.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import settings
from app.core.database import async_session_factory, session_scope
from app.services.cleanup import CleanupError, run_cleanup_sweep

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "verification-cleanup"


async def scheduled_cleanup() -> None:
    """Run one sweep in its own session.

    Failures are logged and swallowed so the next scheduled run still fires.
    """
    try:
        async with session_scope(async_session_factory) as session:
            await run_cleanup_sweep(session)
    except CleanupError:
        logger.warning("Scheduled cleanup sweep failed", exc_info=True)


def build_scheduler() -> AsyncIOScheduler:
    """Create a scheduler with the cleanup job registered (not started)."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    if settings.cleanup_enabled:
        scheduler.add_job(
            scheduled_cleanup,
            "cron",
            id=CLEANUP_JOB_ID,
            hour=settings.cleanup_hour,
            minute=settings.cleanup_minute,
            replace_existing=True,
        )
    return scheduler

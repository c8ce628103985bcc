"""Tests for the cleanup scheduler wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core import scheduler as scheduler_module
from app.core.config import settings
from app.core.scheduler import CLEANUP_JOB_ID, build_scheduler, scheduled_cleanup
from app.services.cleanup import CleanupError, CleanupSweepResult


@pytest.fixture
def cleanup_settings():
    """Restore cleanup settings after each test."""
    original = (settings.cleanup_enabled, settings.cleanup_hour, settings.cleanup_minute)
    yield
    settings.cleanup_enabled, settings.cleanup_hour, settings.cleanup_minute = original


class TestBuildScheduler:
    """Job registration."""

    def test_registers_daily_cron_job(self, cleanup_settings):  # noqa: ARG002
        """The sweep runs once a day at the configured time."""
        settings.cleanup_enabled = True
        settings.cleanup_hour = 4
        settings.cleanup_minute = 30

        scheduler = build_scheduler()
        job = scheduler.get_job(CLEANUP_JOB_ID)

        assert job is not None
        fields = {f.name: str(f) for f in job.trigger.fields}
        assert fields["hour"] == "4"
        assert fields["minute"] == "30"

    def test_no_job_when_disabled(self, cleanup_settings):  # noqa: ARG002
        """CLEANUP_ENABLED=false registers nothing."""
        settings.cleanup_enabled = False
        assert build_scheduler().get_jobs() == []


class TestScheduledCleanup:
    """One scheduled run."""

    @pytest.mark.asyncio
    async def test_commits_after_sweep(self):
        """A successful sweep is committed."""
        session = MagicMock()
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with (
            patch.object(scheduler_module, "async_session_factory", factory),
            patch.object(
                scheduler_module,
                "run_cleanup_sweep",
                AsyncMock(return_value=CleanupSweepResult(1, 2, 3)),
            ),
        ):
            await scheduled_cleanup()

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_rolls_back_without_raising(self):
        """A failed sweep is rolled back so the next run still fires."""
        session = MagicMock()
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with (
            patch.object(scheduler_module, "async_session_factory", factory),
            patch.object(
                scheduler_module,
                "run_cleanup_sweep",
                AsyncMock(side_effect=CleanupError("boom")),
            ),
        ):
            await scheduled_cleanup()

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

"""
Unit Tests for Scheduled Jobs.

Tests for:
- Reaper job registration (interval, single instance, coalescing)
- REAPER_ENABLED switch
- run_reaper delegating to the StaleSessionReaper
- Manual triggering
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from app.services import scheduler as scheduler_module
from app.services.scheduler import (
    REAPER_JOB_ID,
    run_reaper,
    setup_scheduled_jobs,
    trigger_job_now,
)
from app.services.tracking.reaper import ReaperReport


class TestSetupScheduledJobs:
    """Tests for setup_scheduled_jobs."""

    def test_reaper_registered(self) -> None:
        mock_scheduler = MagicMock()
        with patch.object(scheduler_module, "scheduler", mock_scheduler), patch.object(
            scheduler_module.settings, "REAPER_ENABLED", True
        ), patch.object(scheduler_module.settings, "REAPER_INTERVAL_MINUTES", 5):
            setup_scheduled_jobs()

        mock_scheduler.add_job.assert_called_once()
        args, kwargs = mock_scheduler.add_job.call_args
        assert args[0] is run_reaper
        assert isinstance(args[1], IntervalTrigger)
        assert args[1].interval.total_seconds() == 300
        assert kwargs["id"] == REAPER_JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True

    def test_reaper_disabled(self) -> None:
        mock_scheduler = MagicMock()
        with patch.object(scheduler_module, "scheduler", mock_scheduler), patch.object(
            scheduler_module.settings, "REAPER_ENABLED", False
        ):
            setup_scheduled_jobs()

        mock_scheduler.add_job.assert_not_called()


class TestRunReaper:
    """Tests for the reaper job body."""

    @pytest.mark.asyncio
    async def test_runs_one_sweep(self) -> None:
        reaper = MagicMock()
        reaper.sweep = AsyncMock(return_value=ReaperReport(expired_session_ids=[4]))

        with patch(
            "app.services.tracking.reaper.StaleSessionReaper", return_value=reaper
        ):
            await run_reaper()

        reaper.sweep.assert_awaited_once()


class TestTriggerJobNow:
    """Tests for trigger_job_now."""

    def test_unknown_job(self) -> None:
        mock_scheduler = MagicMock()
        mock_scheduler.get_job.return_value = None

        with patch.object(scheduler_module, "scheduler", mock_scheduler):
            assert trigger_job_now("nope") is False

    def test_known_job(self) -> None:
        job = MagicMock()
        mock_scheduler = MagicMock()
        mock_scheduler.get_job.return_value = job

        with patch.object(scheduler_module, "scheduler", mock_scheduler):
            assert trigger_job_now(REAPER_JOB_ID) is True

        job.modify.assert_called_once()

"""
Scheduled Job Configuration

Configures periodic jobs using APScheduler:
- Stale session reaper every REAPER_INTERVAL_MINUTES (default 10)

Execution Context:
    The scheduler runs IN-PROCESS with FastAPI. It is started/stopped via
    FastAPI's lifespan context manager in app/main.py.

    Flow:
        uvicorn starts FastAPI -> lifespan() calls start_scheduler()
        -> APScheduler runs in the event loop

    Jobs run on the application's event loop, so the reaper and request
    handlers share the same per-resource asyncio locks.

Limitations:
    - Single instance only: the resource locks are process-local, and each
      replica would run its own reaper.

Usage:
    # Automatic (via FastAPI lifespan in main.py):
    start_scheduler()  # On app startup
    stop_scheduler()   # On app shutdown

    # Manual trigger for testing:
    from app.services.scheduler import trigger_job_now
    trigger_job_now("session_reaper")
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config.settings import settings, yaml_config

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

REAPER_JOB_ID = "session_reaper"


async def run_reaper() -> None:
    """Sweep stale sessions and reconcile unaggregated ones."""
    # Deferred import: avoid loading DB and service modules until job execution.
    from app.services.tracking.reaper import StaleSessionReaper

    report = await StaleSessionReaper().sweep()
    if report.failed_session_ids:
        logger.warning(
            f"Reaper could not process sessions: {report.failed_session_ids}"
        )


def setup_scheduled_jobs() -> None:
    """Configure all scheduled jobs."""
    if not settings.REAPER_ENABLED:
        logger.info("Session reaper disabled (REAPER_ENABLED=false)")
        return

    misfire_grace_time = yaml_config.get("scheduler", {}).get("misfire_grace_time", 300)

    scheduler.add_job(
        run_reaper,
        IntervalTrigger(minutes=settings.REAPER_INTERVAL_MINUTES),
        id=REAPER_JOB_ID,
        name="Stale Session Reaper",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=misfire_grace_time,
    )

    logger.info("Scheduled jobs configured:")
    logger.info(
        f"  - Session reaper: every {settings.REAPER_INTERVAL_MINUTES} minutes "
        f"(stale after {settings.STALE_SESSION_THRESHOLD_MINUTES} minutes)"
    )


def start_scheduler() -> None:
    """Start the scheduler and configure jobs."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    setup_scheduled_jobs()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if not scheduler.running:
        logger.warning("Scheduler not running")
        return

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


def get_scheduled_jobs() -> list[dict]:
    """Get list of scheduled jobs with their next run times."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": (
                    job.next_run_time.isoformat() if job.next_run_time else None
                ),
                "trigger": str(job.trigger),
            }
        )
    return jobs


def trigger_job_now(job_id: str) -> bool:
    """
    Manually trigger a scheduled job immediately.

    Args:
        job_id: ID of the job to trigger

    Returns:
        True if triggered successfully
    """
    job = scheduler.get_job(job_id)
    if job:
        job.modify(next_run_time=datetime.now(timezone.utc))
        logger.info(f"Manually triggered job: {job_id}")
        return True

    logger.warning(f"Job not found: {job_id}")
    return False

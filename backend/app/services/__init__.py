"""Services package for study tracking and background scheduling."""

from app.services.scheduler import (
    get_scheduled_jobs,
    run_reaper,
    start_scheduler,
    stop_scheduler,
    trigger_job_now,
)
from app.services.tracking import TrackingEngine

__all__ = [
    "TrackingEngine",
    "get_scheduled_jobs",
    "run_reaper",
    "start_scheduler",
    "stop_scheduler",
    "trigger_job_now",
]

"""
Study Tracking Services

Session lifecycle, page activity, stale session reaping, progress
aggregation, streaks and goals.

Usage:
    from app.services.tracking import TrackingEngine

    engine = TrackingEngine(db)
    started = await engine.start(resource_id=1, start_page=1)
"""

from app.services.tracking.catalog import ResourceCatalog
from app.services.tracking.engine import TrackingEngine
from app.services.tracking.errors import (
    GoalNotFoundError,
    InvalidPageError,
    NoActiveSessionError,
    ResourceNotFoundError,
    SessionNotFoundError,
)
from app.services.tracking.goal_service import GoalService
from app.services.tracking.locks import ResourceLockRegistry, resource_locks
from app.services.tracking.page_activity import PageActivityTracker
from app.services.tracking.progress_aggregator import ProgressAggregator
from app.services.tracking.reaper import ReaperReport, StaleSessionReaper
from app.services.tracking.session_lifecycle import SessionLifecycleManager
from app.services.tracking.streak_tracking import StreakTrackingService

__all__ = [
    "GoalNotFoundError",
    "GoalService",
    "InvalidPageError",
    "NoActiveSessionError",
    "PageActivityTracker",
    "ProgressAggregator",
    "ReaperReport",
    "ResourceCatalog",
    "ResourceLockRegistry",
    "ResourceNotFoundError",
    "SessionLifecycleManager",
    "SessionNotFoundError",
    "StaleSessionReaper",
    "StreakTrackingService",
    "TrackingEngine",
    "resource_locks",
]

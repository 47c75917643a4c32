"""
Tracking Engine

Transport-agnostic facade over the tracking services. Routers, jobs and
tests talk to this instead of wiring the services together themselves.

Operations:
- start(resource_id, start_page) -> SessionStartResponse
- page_change(session_id, from_page, to_page, timestamp)
- end(resource_id, end_page, notes) -> SessionEndResponse
- get_active(resource_id) -> ActiveSession | None
- get_progress(resource_id) -> ProgressResponse
- get_streak() -> StreakData

Usage:
    engine = TrackingEngine(db)
    started = await engine.start(resource_id=1, start_page=1)
    await engine.page_change(started.session_id, 1, 2)
    result = await engine.end(resource_id=1)
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings
from app.enums.tracking import SessionType
from app.models.tracking import (
    ActiveSession,
    PageChangeResponse,
    ProgressResponse,
    SessionEndResponse,
    SessionStartResponse,
    StreakData,
)
from app.services.tracking.catalog import ResourceCatalog
from app.services.tracking.clock import Clock, utc_now
from app.services.tracking.goal_service import GoalService
from app.services.tracking.locks import ResourceLockRegistry, resource_locks
from app.services.tracking.page_activity import PageActivityTracker
from app.services.tracking.progress_aggregator import ProgressAggregator
from app.services.tracking.session_lifecycle import SessionLifecycleManager
from app.services.tracking.streak_tracking import StreakTrackingService

logger = logging.getLogger(__name__)


class TrackingEngine:
    """
    One database session's view of the tracking services.

    The component services are exposed as attributes for operations
    beyond the core six (history, page stats, goals, daily stats).
    """

    def __init__(
        self,
        db: AsyncSession,
        locks: ResourceLockRegistry = resource_locks,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        config = config or settings
        self.catalog = ResourceCatalog(db)
        self.sessions = SessionLifecycleManager(db, locks=locks, config=config, clock=clock)
        self.pages = PageActivityTracker(db)
        self.progress = ProgressAggregator(db, config=config, clock=clock)
        self.streaks = StreakTrackingService(db, config=config, clock=clock)
        self.goals = GoalService(db, config=config, clock=clock)

    async def start(
        self,
        resource_id: int,
        start_page: int = 1,
        session_type: SessionType = SessionType.READING,
        session_goal: Optional[str] = None,
    ) -> SessionStartResponse:
        return await self.sessions.start_session(
            resource_id, start_page, session_type=session_type, session_goal=session_goal
        )

    async def page_change(
        self,
        session_id: int,
        from_page: int,
        to_page: int,
        timestamp: Optional[datetime] = None,
    ) -> PageChangeResponse:
        return await self.sessions.record_page_change(
            session_id, from_page, to_page, timestamp
        )

    async def end(
        self,
        resource_id: int,
        end_page: Optional[int] = None,
        notes: Optional[str] = None,
        focus_rating: Optional[int] = None,
        distractions_count: int = 0,
    ) -> SessionEndResponse:
        """End the active session, then re-evaluate open goals."""
        result = await self.sessions.end_session(
            resource_id,
            end_page=end_page,
            notes=notes,
            focus_rating=focus_rating,
            distractions_count=distractions_count,
        )

        # The session is already committed; a goal failure must not undo it
        try:
            await self.goals.evaluate_all()
        except Exception as e:
            logger.error(
                f"Goal evaluation after session {result.session.id} failed: {e}",
                exc_info=True,
            )
            await self.db.rollback()

        return result

    async def get_active(self, resource_id: int) -> Optional[ActiveSession]:
        return await self.sessions.get_active_session(resource_id)

    async def get_progress(self, resource_id: int) -> ProgressResponse:
        return await self.progress.get_progress(resource_id)

    async def get_streak(self, as_of: Optional[date] = None) -> StreakData:
        return await self.streaks.get_streak_data(as_of)

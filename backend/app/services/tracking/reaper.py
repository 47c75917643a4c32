"""
Stale Session Reaper

Background sweep that force-closes sessions abandoned by a disconnected
client, and re-applies progress for closed sessions whose aggregation
never landed.

Staleness:
    A session's last sign of life is the latest of its newest page
    activity's enter (or exit) time, its last heartbeat and its start.
    When that is older than STALE_SESSION_THRESHOLD_MINUTES the session is
    closed with reason expired at last_sign_of_life + threshold, never at
    "now", so a session abandoned at 2pm is not credited until 10pm just
    because the sweep ran late.

Each session is handled under its resource's lock in its own database
session. A failure on one session is logged and skipped; sweep() never
raises.

Usage:
    reaper = StaleSessionReaper()
    report = await reaper.sweep()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import Settings, settings
from app.db.models_tracking import StudySession
from app.services.tracking.clock import Clock, utc_now
from app.services.tracking.locks import ResourceLockRegistry, resource_locks
from app.services.tracking.page_activity import PageActivityTracker
from app.services.tracking.progress_aggregator import ProgressAggregator
from app.services.tracking.session_lifecycle import SessionLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class ReaperReport:
    """Outcome of one sweep."""

    expired_session_ids: list[int] = field(default_factory=list)
    reconciled_session_ids: list[int] = field(default_factory=list)
    failed_session_ids: list[int] = field(default_factory=list)


async def last_sign_of_life(
    db: AsyncSession, session: StudySession
) -> datetime:
    """Latest evidence that a client was still working in the session."""
    latest = await PageActivityTracker(db).get_latest_activity(session.id)

    candidates = [session.started_at]
    if session.last_heartbeat_at is not None:
        candidates.append(session.last_heartbeat_at)
    if latest is not None:
        candidates.append(latest.exited_at or latest.entered_at)
    return max(candidates)


class StaleSessionReaper:
    """Interval sweep over active and unaggregated sessions."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        locks: ResourceLockRegistry = resource_locks,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the reaper.

        Args:
            session_factory: Opens one database session per resource.
                Defaults to the application's session maker.
            locks: Lock registry shared with the request handlers.
            config: Settings override (tests); defaults to app settings.
            clock: Source of "now".
        """
        if session_factory is None:
            # Deferred import: the engine is only needed once a sweep runs
            from app.db.base import async_session_maker

            session_factory = async_session_maker

        self.session_factory = session_factory
        self.locks = locks
        self.config = config or settings
        self.clock = clock

    @property
    def threshold(self) -> timedelta:
        return timedelta(minutes=self.config.STALE_SESSION_THRESHOLD_MINUTES)

    async def sweep(self) -> ReaperReport:
        """
        Run one sweep: expire stale sessions, then reconcile aggregation.

        Returns:
            ReaperReport listing expired, reconciled and failed session ids.
        """
        report = ReaperReport()
        now = self.clock()

        try:
            active = await self._find_sessions(active=True)
        except Exception as e:
            logger.error(f"Reaper could not list active sessions: {e}", exc_info=True)
            active = []

        for session_id, resource_id in active:
            try:
                if await self._expire_if_stale(session_id, resource_id, now):
                    report.expired_session_ids.append(session_id)
            except Exception as e:
                logger.error(
                    f"Reaper failed to expire session {session_id}: {e}",
                    exc_info=True,
                    extra={"session_id": session_id, "resource_id": resource_id},
                )
                report.failed_session_ids.append(session_id)

        try:
            unaggregated = await self._find_sessions(active=False)
        except Exception as e:
            logger.error(
                f"Reaper could not list unaggregated sessions: {e}", exc_info=True
            )
            unaggregated = []

        for session_id, resource_id in unaggregated:
            try:
                if await self._reconcile(session_id, resource_id):
                    report.reconciled_session_ids.append(session_id)
            except Exception as e:
                logger.error(
                    f"Reaper failed to reconcile session {session_id}: {e}",
                    exc_info=True,
                    extra={"session_id": session_id, "resource_id": resource_id},
                )
                report.failed_session_ids.append(session_id)

        if report.expired_session_ids or report.reconciled_session_ids:
            logger.info(
                f"Reaper sweep: expired {len(report.expired_session_ids)}, "
                f"reconciled {len(report.reconciled_session_ids)}, "
                f"failed {len(report.failed_session_ids)}"
            )
        else:
            logger.debug("Reaper sweep: nothing to do")
        return report

    # ===========================================
    # Steps
    # ===========================================

    async def _find_sessions(self, active: bool) -> list[tuple[int, int]]:
        """
        (session_id, resource_id) pairs to visit.

        active=True lists open sessions; active=False lists closed sessions
        the aggregator has not applied.
        """
        query = select(StudySession.id, StudySession.resource_id)
        if active:
            query = query.where(StudySession.is_active.is_(True))
        else:
            query = query.where(
                StudySession.is_active.is_(False),
                StudySession.aggregated_at.is_(None),
            )

        async with self.session_factory() as db:
            result = await db.execute(query.order_by(StudySession.id))
            return [(row.id, row.resource_id) for row in result]

    async def _expire_if_stale(
        self, session_id: int, resource_id: int, now: datetime
    ) -> bool:
        async with self.locks.hold(resource_id):
            async with self.session_factory() as db:
                session = await db.get(StudySession, session_id)
                # Re-check under the lock: the client may have ended it
                if session is None or not session.is_active:
                    return False

                last_seen = await last_sign_of_life(db, session)
                if now - last_seen <= self.threshold:
                    return False

                manager = SessionLifecycleManager(
                    db, locks=self.locks, config=self.config, clock=self.clock
                )
                end_time = last_seen + self.threshold
                await manager.expire_session(session, end_time)
                await db.commit()

                logger.info(
                    f"Expired session {session_id} on resource {resource_id}, "
                    f"last seen {last_seen.isoformat()}",
                    extra={
                        "session_id": session_id,
                        "resource_id": resource_id,
                        "ended_at": end_time.isoformat(),
                    },
                )
                return True

    async def _reconcile(self, session_id: int, resource_id: int) -> bool:
        async with self.locks.hold(resource_id):
            async with self.session_factory() as db:
                session = await db.get(StudySession, session_id)
                if session is None or session.is_active or session.aggregated_at:
                    return False

                aggregator = ProgressAggregator(db, config=self.config, clock=self.clock)
                await aggregator.on_session_closed(session)
                await db.commit()

                logger.info(f"Reconciled progress for session {session_id}")
                return True

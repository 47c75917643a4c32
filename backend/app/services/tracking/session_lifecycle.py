"""
Session Lifecycle Manager

Owns the lifecycle of study sessions: start, page change, heartbeat, end
and the live view of the active session.

State machine:
    active -> closed(explicit)    end signal from the client
    active -> closed(superseded)  a new session started for the resource
    active -> closed(expired)     the reaper found the session abandoned

Every transition goes through _close_session(), which closes the open
page activity, fixes the session totals, records a force_closed event for
compensating closes and hands the session to the Progress Aggregator.

Concurrency:
    Every mutation runs under the resource's lock and commits before the
    lock is released, so the next holder always sees committed state.

Usage:
    manager = SessionLifecycleManager(db)
    started = await manager.start_session(resource_id=1, start_page=1)
    await manager.record_page_change(started.session_id, 1, 2)
    ended = await manager.end_session(resource_id=1, end_page=2)
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings
from app.db.models_tracking import SessionEvent, StudySession
from app.enums.tracking import (
    ReadingDifficulty,
    SessionCloseReason,
    SessionEventType,
    SessionType,
)
from app.models.tracking import (
    ActiveSession,
    HeartbeatResponse,
    PageActivityResponse,
    PageChangeResponse,
    SessionEndResponse,
    SessionEventResponse,
    SessionHistoryResponse,
    SessionHistoryStats,
    SessionStartResponse,
    SessionStats,
    StudySessionResponse,
)
from app.services.tracking.catalog import ResourceCatalog
from app.services.tracking.clock import Clock, ensure_utc, utc_now
from app.services.tracking.errors import (
    InvalidPageError,
    NoActiveSessionError,
    SessionNotFoundError,
)
from app.services.tracking.locks import ResourceLockRegistry, resource_locks
from app.services.tracking.page_activity import PageActivityTracker
from app.services.tracking.progress_aggregator import (
    ProgressAggregator,
    classify_difficulty,
    completion_percentage,
    estimate_remaining_minutes,
    reading_speed,
)

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """
    Session lifecycle service.

    Mutating methods commit their own transaction while holding the
    resource lock.
    """

    def __init__(
        self,
        db: AsyncSession,
        locks: ResourceLockRegistry = resource_locks,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the lifecycle manager.

        Args:
            db: SQLAlchemy async database session.
            locks: Per-resource lock registry shared with the reaper.
            config: Settings override (tests); defaults to app settings.
            clock: Source of "now".
        """
        self.db = db
        self.locks = locks
        self.config = config or settings
        self.clock = clock
        self.catalog = ResourceCatalog(db)
        self.tracker = PageActivityTracker(db)
        self.aggregator = ProgressAggregator(db, config=self.config, clock=clock)

    # ===========================================
    # Start
    # ===========================================

    async def start_session(
        self,
        resource_id: int,
        start_page: int = 1,
        session_type: SessionType = SessionType.READING,
        session_goal: Optional[str] = None,
    ) -> SessionStartResponse:
        """
        Start a session, superseding any session still active.

        A pre-existing active session means the client refreshed or
        crashed without ending it. It is closed at this session's start
        time on its last known page, never rejected.

        Args:
            resource_id: Resource to study.
            start_page: Page the first activity opens on.
            session_type: reading, review or practice.
            session_goal: Optional free-text intention.

        Returns:
            SessionStartResponse with the new session and the id of the
            superseded one, if any.

        Raises:
            ResourceNotFoundError: If the resource is unknown.
            InvalidPageError: If start_page is outside the resource.
        """
        async with self.locks.hold(resource_id):
            resource = await self.catalog.get_resource(resource_id)
            self._check_pages(resource_id, resource.total_pages, start_page)
            now = self.clock()

            superseded_id = None
            for stale in await self._get_active_rows(resource_id):
                await self._close_session(
                    stale,
                    end_time=now,
                    end_page=stale.end_page,
                    reason=SessionCloseReason.SUPERSEDED,
                )
                superseded_id = stale.id

            session = StudySession(
                resource_id=resource_id,
                session_type=session_type.value,
                session_goal=session_goal,
                started_at=now,
                start_page=start_page,
                end_page=start_page,
                total_duration_seconds=0,
                pages_covered=0,
                is_active=True,
                distractions_count=0,
            )
            self.db.add(session)
            await self.db.flush()
            await self.tracker.open(session, start_page, now)

            await self.db.commit()

        logger.info(
            f"Started session {session.id} on resource {resource_id} at page {start_page}",
            extra={
                "session_id": session.id,
                "resource_id": resource_id,
                "superseded_session_id": superseded_id,
            },
        )
        return SessionStartResponse(
            session_id=session.id,
            session=StudySessionResponse.model_validate(session),
            superseded_session_id=superseded_id,
        )

    # ===========================================
    # Page Change & Heartbeat
    # ===========================================

    async def record_page_change(
        self,
        session_id: int,
        from_page: int,
        to_page: int,
        timestamp: Optional[datetime] = None,
    ) -> PageChangeResponse:
        """
        Move the session from one page to another.

        Closes the open activity for from_page at timestamp and opens one
        for to_page at the same instant. If from_page has no open activity
        (a duplicate or late signal) nothing changes.

        Args:
            session_id: Active session.
            from_page: Page being left.
            to_page: Page being entered.
            timestamp: When the change happened; naive values are UTC.
                Defaults to now.

        Returns:
            PageChangeResponse; recorded is False for a no-op.

        Raises:
            SessionNotFoundError: If the session does not exist.
            NoActiveSessionError: If the session is already closed.
            InvalidPageError: If either page is outside the resource.
        """
        session = await self._get_session(session_id)

        async with self.locks.hold(session.resource_id):
            await self.db.refresh(session)
            self._require_active(session)
            self._check_pages(
                session.resource_id,
                await self.catalog.get_total_pages(session.resource_id),
                from_page,
                to_page,
            )

            at = ensure_utc(timestamp) or self.clock()
            current = await self.tracker.get_open_activity(session.id)

            if current is None or current.page_number != from_page:
                logger.debug(
                    f"Session {session_id}: no open activity for page {from_page}, "
                    f"ignoring page change to {to_page}"
                )
                return PageChangeResponse(
                    session_id=session_id,
                    recorded=False,
                    current_page=current.page_number if current else session.end_page,
                )

            await self.tracker.close(current, at)
            await self.tracker.open(session, to_page, at)
            session.end_page = to_page
            closed = PageActivityResponse.model_validate(current)

            await self.db.commit()

        return PageChangeResponse(
            session_id=session_id,
            recorded=True,
            current_page=to_page,
            closed_activity=closed,
        )

    async def heartbeat(
        self, session_id: int, current_page: Optional[int] = None
    ) -> HeartbeatResponse:
        """
        Record a sign of life so the reaper leaves a long page alone.

        Raises:
            SessionNotFoundError: If the session does not exist.
            NoActiveSessionError: If the session is already closed.
        """
        session = await self._get_session(session_id)

        async with self.locks.hold(session.resource_id):
            await self.db.refresh(session)
            self._require_active(session)

            session.last_heartbeat_at = self.clock()
            current = await self.tracker.get_open_activity(session.id)
            open_page = current.page_number if current else session.end_page
            if current_page is not None and current_page != open_page:
                logger.debug(
                    f"Heartbeat for session {session_id} reports page {current_page} "
                    f"but page {open_page} is open"
                )

            await self.db.commit()

        return HeartbeatResponse(
            session_id=session_id,
            last_heartbeat_at=session.last_heartbeat_at,
            current_page=open_page,
        )

    # ===========================================
    # End
    # ===========================================

    async def end_session(
        self,
        resource_id: int,
        end_page: Optional[int] = None,
        notes: Optional[str] = None,
        focus_rating: Optional[int] = None,
        distractions_count: int = 0,
    ) -> SessionEndResponse:
        """
        End the resource's active session.

        The newest active row is the one ended. Any older rows still
        active are closed as superseded at their successor's start time.

        Args:
            resource_id: Resource whose session ends.
            end_page: Final page; defaults to the last page changed to.
            notes: Free-text notes.
            focus_rating: Self-reported focus (1-5).
            distractions_count: Self-reported distractions.

        Returns:
            SessionEndResponse with the closed session and its stats.

        Raises:
            NoActiveSessionError: If nothing is active for the resource.
            InvalidPageError: If end_page is outside the resource.
        """
        async with self.locks.hold(resource_id):
            rows = await self._get_active_rows(resource_id)
            if not rows:
                raise NoActiveSessionError(
                    f"No active session for resource {resource_id}",
                    details={"resource_id": resource_id},
                )
            session = rows[-1]
            if end_page is not None:
                self._check_pages(
                    resource_id, await self.catalog.get_total_pages(resource_id), end_page
                )

            # Older rows left active are closed as superseded by their successor
            for stale, successor in zip(rows, rows[1:]):
                await self._close_session(
                    stale,
                    end_time=successor.started_at,
                    end_page=stale.end_page,
                    reason=SessionCloseReason.SUPERSEDED,
                )

            session.notes = notes
            session.focus_rating = focus_rating
            session.distractions_count = distractions_count

            await self._close_session(
                session,
                end_time=self.clock(),
                end_page=end_page or session.end_page,
                reason=SessionCloseReason.EXPLICIT,
            )
            stats = await self._build_stats(session)

            await self.db.commit()

        logger.info(
            f"Ended session {session.id}: {stats.duration_seconds}s, "
            f"{stats.pages_covered} pages, {stats.reading_speed} ppm",
            extra={"session_id": session.id, "resource_id": resource_id},
        )
        return SessionEndResponse(
            session=StudySessionResponse.model_validate(session),
            stats=stats,
        )

    async def expire_session(self, session: StudySession, end_time: datetime) -> bool:
        """
        Close an abandoned session with reason expired.

        The caller must hold the resource's lock and commit.

        Returns:
            True if the session was closed by this call.
        """
        return await self._close_session(
            session,
            end_time=end_time,
            end_page=session.end_page,
            reason=SessionCloseReason.EXPIRED,
        )

    # ===========================================
    # Reads
    # ===========================================

    async def get_active_session(self, resource_id: int) -> Optional[ActiveSession]:
        """
        Live view of the resource's active session.

        Returns:
            ActiveSession with current_duration_seconds measured from
            started_at to now, or None when nothing is active.
        """
        rows = await self._get_active_rows(resource_id)
        if not rows:
            return None
        session = rows[-1]

        current = await self.tracker.get_open_activity(session.id)
        pages_visited = await self.tracker.count_pages_visited(session.id)
        elapsed = int((self.clock() - session.started_at).total_seconds())

        return ActiveSession(
            **StudySessionResponse.model_validate(session).model_dump(),
            current_duration_seconds=max(0, elapsed),
            current_page=current.page_number if current else session.end_page,
            pages_visited=pages_visited,
        )

    async def get_session_pages(self, session_id: int) -> list[PageActivityResponse]:
        """All page activities of a session in the order they were opened."""
        await self._get_session(session_id)
        activities = await self.tracker.list_activities(session_id)
        return [PageActivityResponse.model_validate(a) for a in activities]

    async def list_sessions(
        self, resource_id: int, limit: int = 20
    ) -> SessionHistoryResponse:
        """
        Recent closed sessions of a resource with aggregate stats.

        Args:
            resource_id: Resource to report on.
            limit: Maximum sessions returned, newest first.
        """
        result = await self.db.execute(
            select(StudySession)
            .where(
                StudySession.resource_id == resource_id,
                StudySession.is_active.is_(False),
            )
            .order_by(StudySession.ended_at.desc(), StudySession.id.desc())
            .limit(limit)
        )
        sessions = [
            StudySessionResponse.model_validate(s) for s in result.scalars().all()
        ]

        return SessionHistoryResponse(
            resource_id=resource_id,
            stats=await self.session_stats(resource_id),
            sessions=sessions,
        )

    async def session_stats(self, resource_id: int) -> SessionHistoryStats:
        """Aggregates over all closed sessions of a resource."""
        result = await self.db.execute(
            select(
                func.count(StudySession.id),
                func.coalesce(func.sum(StudySession.total_duration_seconds), 0),
                func.coalesce(func.avg(StudySession.total_duration_seconds), 0),
                func.coalesce(func.max(StudySession.total_duration_seconds), 0),
                func.coalesce(func.sum(StudySession.pages_covered), 0),
                func.avg(StudySession.focus_rating),
                func.coalesce(func.sum(StudySession.distractions_count), 0),
            ).where(
                StudySession.resource_id == resource_id,
                StudySession.is_active.is_(False),
            )
        )
        (
            total,
            total_seconds,
            avg_seconds,
            longest,
            pages,
            avg_focus,
            distractions,
        ) = result.one()

        forced = await self.db.execute(
            select(func.count(StudySession.id)).where(
                StudySession.resource_id == resource_id,
                StudySession.is_active.is_(False),
                StudySession.close_reason != SessionCloseReason.EXPLICIT.value,
            )
        )

        return SessionHistoryStats(
            total_sessions=total,
            total_seconds=int(total_seconds),
            avg_session_seconds=round(float(avg_seconds), 1),
            longest_session_seconds=int(longest),
            total_pages_covered=int(pages),
            avg_focus_rating=round(float(avg_focus), 1) if avg_focus is not None else None,
            total_distractions=int(distractions),
            forced_closes=forced.scalar() or 0,
        )

    async def list_events(
        self,
        resource_id: Optional[int] = None,
        session_id: Optional[int] = None,
        limit: int = 50,
    ) -> list[SessionEventResponse]:
        """Audit events, newest first, optionally filtered."""
        query = select(SessionEvent).order_by(SessionEvent.id.desc()).limit(limit)
        if resource_id is not None:
            query = query.where(SessionEvent.resource_id == resource_id)
        if session_id is not None:
            query = query.where(SessionEvent.session_id == session_id)

        result = await self.db.execute(query)
        return [SessionEventResponse.model_validate(e) for e in result.scalars().all()]

    # ===========================================
    # Transition
    # ===========================================

    async def _close_session(
        self,
        session: StudySession,
        end_time: datetime,
        end_page: int,
        reason: SessionCloseReason,
    ) -> bool:
        """
        The single active -> closed(reason) transition.

        Closes the open page activity at end_time, sets total duration to
        the exact sum of closed activity durations, records a
        force_closed event for superseded/expired closes and applies the
        session to progress. Closing an already closed session is a no-op.

        Returns:
            True if the session was closed by this call.
        """
        if not session.is_active:
            logger.debug(f"Session {session.id} already closed, ignoring close")
            return False

        await self.tracker.close_open(session.id, end_time)
        total_duration, pages_covered = await self.tracker.session_totals(session.id)

        session.total_duration_seconds = total_duration
        session.pages_covered = pages_covered
        session.ended_at = end_time
        session.end_page = end_page
        session.is_active = False
        session.close_reason = reason.value

        if reason != SessionCloseReason.EXPLICIT:
            self.db.add(
                SessionEvent(
                    session_id=session.id,
                    resource_id=session.resource_id,
                    event_type=SessionEventType.FORCE_CLOSED.value,
                    reason=reason.value,
                    detail={
                        "ended_at": end_time.isoformat(),
                        "end_page": end_page,
                        "total_duration_seconds": total_duration,
                    },
                    created_at=self.clock(),
                )
            )
            logger.info(
                f"Force-closed session {session.id} ({reason.value}) "
                f"with {total_duration}s recorded",
                extra={
                    "session_id": session.id,
                    "resource_id": session.resource_id,
                    "reason": reason.value,
                },
            )

        await self.db.flush()
        await self._aggregate(session)
        return True

    async def _aggregate(self, session: StudySession) -> None:
        """
        Apply a closed session to progress inside a savepoint.

        A failure rolls back only the aggregation; the close stands, the
        failure is recorded and the reaper's reconciliation retries it.
        """
        try:
            async with self.db.begin_nested():
                await self.aggregator.on_session_closed(session)
        except Exception as e:
            logger.error(
                f"Aggregation failed for session {session.id}: {e}",
                exc_info=True,
                extra={"session_id": session.id, "resource_id": session.resource_id},
            )
            await self.db.refresh(session)
            self.db.add(
                SessionEvent(
                    session_id=session.id,
                    resource_id=session.resource_id,
                    event_type=SessionEventType.AGGREGATION_FAILED.value,
                    detail={"error": str(e)},
                    created_at=self.clock(),
                )
            )
            await self.db.flush()

    # ===========================================
    # Helpers
    # ===========================================

    async def _get_session(self, session_id: int) -> StudySession:
        session = await self.db.get(StudySession, session_id)
        if session is None:
            raise SessionNotFoundError(
                f"Session {session_id} not found",
                details={"session_id": session_id},
            )
        return session

    async def _get_active_rows(self, resource_id: int) -> list[StudySession]:
        """Active sessions of a resource, oldest first (normally 0 or 1)."""
        result = await self.db.execute(
            select(StudySession)
            .where(
                StudySession.resource_id == resource_id,
                StudySession.is_active.is_(True),
            )
            .order_by(StudySession.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _require_active(session: StudySession) -> None:
        if not session.is_active:
            raise NoActiveSessionError(
                f"Session {session.id} is not active",
                details={"session_id": session.id, "resource_id": session.resource_id},
            )

    @staticmethod
    def _check_pages(resource_id: int, total_pages: Optional[int], *pages: int) -> None:
        for page in pages:
            if page < 1 or (total_pages is not None and page > total_pages):
                raise InvalidPageError(
                    f"Page {page} is outside resource {resource_id}",
                    details={
                        "resource_id": resource_id,
                        "page": page,
                        "total_pages": total_pages,
                    },
                )

    async def _build_stats(self, session: StudySession) -> SessionStats:
        duration = session.total_duration_seconds
        pages = session.pages_covered
        speed = reading_speed(pages, duration)
        total_pages = await self.catalog.get_total_pages(session.resource_id)

        # Nothing was read, so there is no speed to judge
        if duration == 0:
            difficulty = ReadingDifficulty.NORMAL
        else:
            difficulty = classify_difficulty(speed, self.config)

        return SessionStats(
            duration_seconds=duration,
            pages_covered=pages,
            reading_speed=round(speed, 2),
            avg_time_per_page=round(duration / pages, 1) if pages else 0.0,
            estimated_finish_minutes=estimate_remaining_minutes(
                session.end_page, total_pages, speed
            ),
            difficulty=difficulty,
            progress_percentage=completion_percentage(session.end_page, total_pages),
        )

"""
Progress Aggregator

Rolls closed sessions up into the per-resource ReadingProgress record and
the per-date DailyStat bucket. This is the only writer of both tables.

Idempotency:
    A session is applied at most once. The guard is session.aggregated_at,
    backed by ReadingProgress.last_applied_session_id, so retried end
    requests and reaper reconciliation never double count.

Concurrency:
    ReadingProgress rows are only touched under their resource's lock.
    DailyStat rows are shared across resources and are read FOR UPDATE
    before being accumulated.

Usage:
    aggregator = ProgressAggregator(db)
    progress = await aggregator.on_session_closed(session)
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings
from app.db.models_tracking import (
    DailyStat,
    DailyStatResource,
    ReadingProgress,
    StudySession,
)
from app.enums.tracking import ReadingDifficulty
from app.models.tracking import ProgressResponse
from app.services.tracking.catalog import ResourceCatalog
from app.services.tracking.clock import Clock, local_date, utc_now

logger = logging.getLogger(__name__)


# ===========================================
# Calculations
# ===========================================


def reading_speed(pages_covered: int, duration_seconds: int) -> float:
    """Pages per minute; 0 for a zero-length session."""
    if duration_seconds <= 0:
        return 0.0
    return pages_covered / (duration_seconds / 60)


def completion_percentage(current_page: int, total_pages: Optional[int]) -> float:
    """current_page / total_pages as a percentage clamped to 0-100."""
    if not total_pages:
        return 0.0
    return round(max(0.0, min(100.0, current_page / total_pages * 100)), 1)


def estimate_remaining_minutes(
    current_page: int, total_pages: Optional[int], pages_per_minute: float
) -> Optional[int]:
    """
    Minutes to finish the resource at the given speed.

    Returns:
        Whole minutes (rounded), or None when the page count or speed is
        unknown.
    """
    if not total_pages or pages_per_minute <= 0:
        return None
    remaining = max(0, total_pages - current_page)
    return round(remaining / pages_per_minute)


def classify_difficulty(
    pages_per_minute: float, config: Optional[Settings] = None
) -> ReadingDifficulty:
    """
    Bucket a reading speed into a difficulty.

    Below DIFFICULTY_CHALLENGING_PPM is challenging, above
    DIFFICULTY_EASY_PPM is easy.
    """
    config = config or settings
    if pages_per_minute < config.DIFFICULTY_CHALLENGING_PPM:
        return ReadingDifficulty.CHALLENGING
    if pages_per_minute > config.DIFFICULTY_EASY_PPM:
        return ReadingDifficulty.EASY
    return ReadingDifficulty.NORMAL


# ===========================================
# Aggregator
# ===========================================


class ProgressAggregator:
    """
    Applies closed sessions to ReadingProgress and DailyStat.

    Does not commit; the caller owns the transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the aggregator.

        Args:
            db: SQLAlchemy async database session.
            config: Settings override (tests); defaults to app settings.
            clock: Source of "now" for the aggregated_at marker.
        """
        self.db = db
        self.config = config or settings
        self.clock = clock
        self.catalog = ResourceCatalog(db)

    async def on_session_closed(self, session: StudySession) -> ReadingProgress:
        """
        Apply a closed session to its resource's progress and daily bucket.

        Calling this again for the same session changes nothing.

        Args:
            session: A closed session.

        Returns:
            The resource's ReadingProgress after application.

        Raises:
            ValueError: If the session is still active.
        """
        if session.is_active:
            raise ValueError(f"Session {session.id} is still active")

        progress = await self._get_progress_row(session.resource_id)

        already_applied = session.aggregated_at is not None or (
            progress is not None and progress.last_applied_session_id == session.id
        )
        if already_applied:
            logger.debug(f"Session {session.id} already aggregated, skipping")
            if session.aggregated_at is None:
                session.aggregated_at = self.clock()
                await self.db.flush()
            return progress

        if progress is None:
            progress = ReadingProgress(
                resource_id=session.resource_id,
                current_page=session.start_page,
                total_time_seconds=0,
                session_count=0,
                total_pages_read=0,
                average_reading_speed=0.0,
                completion_percentage=0.0,
            )
            self.db.add(progress)

        duration = session.total_duration_seconds or 0
        pages = session.pages_covered or 0
        speed = reading_speed(pages, duration)

        # Unweighted running mean: every session counts equally
        old_count = progress.session_count
        new_count = old_count + 1
        progress.average_reading_speed = (
            (progress.average_reading_speed * old_count) + speed
        ) / new_count
        progress.session_count = new_count
        progress.total_time_seconds += duration
        progress.total_pages_read += pages

        # A late reconciled session must not move the bookmark backwards
        if progress.last_session_at is None or session.ended_at >= progress.last_session_at:
            progress.current_page = session.end_page
            progress.last_session_at = session.ended_at

        total_pages = await self.catalog.get_total_pages(session.resource_id)
        progress.completion_percentage = completion_percentage(
            progress.current_page, total_pages
        )
        progress.estimated_completion_minutes = estimate_remaining_minutes(
            progress.current_page, total_pages, progress.average_reading_speed
        )
        progress.last_applied_session_id = session.id

        await self._apply_to_daily_stat(session, duration, pages)

        session.aggregated_at = self.clock()
        await self.db.flush()

        logger.info(
            f"Aggregated session {session.id} into resource {session.resource_id}: "
            f"+{duration}s, +{pages} pages, {progress.session_count} sessions total",
            extra={
                "session_id": session.id,
                "resource_id": session.resource_id,
                "duration_seconds": duration,
                "pages_covered": pages,
            },
        )
        return progress

    async def get_progress(self, resource_id: int) -> ProgressResponse:
        """
        Progress for a resource.

        A resource with no applied sessions gets an empty default; no row
        is created on read.
        """
        progress = await self._get_progress_row(resource_id)
        total_pages = await self.catalog.get_total_pages(resource_id)

        if progress is None:
            return ProgressResponse(resource_id=resource_id, total_pages=total_pages)

        return ProgressResponse(
            resource_id=resource_id,
            current_page=progress.current_page,
            total_pages=total_pages,
            total_time_seconds=progress.total_time_seconds,
            session_count=progress.session_count,
            total_pages_read=progress.total_pages_read,
            average_reading_speed=round(progress.average_reading_speed, 2),
            estimated_completion_minutes=progress.estimated_completion_minutes,
            last_session_at=progress.last_session_at,
            completion_percentage=progress.completion_percentage,
        )

    # ===========================================
    # Helpers
    # ===========================================

    async def _get_progress_row(self, resource_id: int) -> Optional[ReadingProgress]:
        result = await self.db.execute(
            select(ReadingProgress).where(ReadingProgress.resource_id == resource_id)
        )
        return result.scalar_one_or_none()

    async def _select_daily_stat(self, day: date) -> Optional[DailyStat]:
        """Load a date's bucket with a row lock held until commit."""
        result = await self.db.execute(
            select(DailyStat)
            .where(DailyStat.day == day)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_or_create_daily_stat(self, day: date) -> DailyStat:
        """
        Locked bucket for a date, created on first use.

        Buckets are shared by every resource, so closes on different
        resources serialize on the row lock. If another transaction
        inserts the date first, the unique constraint fails inside the
        savepoint and its row is loaded instead.
        """
        stat = await self._select_daily_stat(day)
        if stat is not None:
            return stat

        try:
            async with self.db.begin_nested():
                self.db.add(
                    DailyStat(
                        day=day,
                        total_seconds=0,
                        pages_read=0,
                        session_count=0,
                        resources_touched=0,
                        goal_met=False,
                    )
                )
        except IntegrityError:
            logger.debug(f"Daily stat for {day} created concurrently, reloading")

        stat = await self._select_daily_stat(day)
        if stat is None:
            raise RuntimeError(f"Daily stat for {day} missing after insert")
        return stat

    async def _apply_to_daily_stat(
        self, session: StudySession, duration: int, pages: int
    ) -> DailyStat:
        """Accumulate a session into the bucket for its local end date."""
        day = local_date(session.ended_at, self.config.TRACKING_TIMEZONE)
        stat = await self._get_or_create_daily_stat(day)

        stat.total_seconds += duration
        stat.pages_read += pages
        stat.session_count += 1

        touched = await self.db.execute(
            select(DailyStatResource.id).where(
                DailyStatResource.daily_stat_id == stat.id,
                DailyStatResource.resource_id == session.resource_id,
            )
        )
        if touched.scalar_one_or_none() is None:
            self.db.add(
                DailyStatResource(daily_stat_id=stat.id, resource_id=session.resource_id)
            )
            stat.resources_touched += 1

        stat.goal_met = stat.total_seconds >= self.config.DAILY_GOAL_MINUTES * 60
        return stat

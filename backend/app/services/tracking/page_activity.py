"""
Page Activity Tracker

Opens and closes the viewing intervals of single pages inside a session.

Rules:
- At most one activity per session is open (exited_at is null). Callers
  close the prior page before opening the next one.
- Revisiting a page creates a new row; time on a page is summed at read
  time, never merged at write time.
- Durations are fixed when an activity closes and never recomputed.
  Closing an already closed activity does nothing.
- Negative durations (clock skew, out-of-order signals) are clamped to
  zero and logged.

Usage:
    tracker = PageActivityTracker(db)
    activity = await tracker.open(session, page_number=1, entered_at=now)
    await tracker.close(activity, exited_at=later)
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_tracking import PageActivity, StudySession
from app.models.tracking import PageStat, PageStatsResponse

logger = logging.getLogger(__name__)


def clamp_duration(
    entered_at: datetime, exited_at: datetime, activity_id: Optional[int] = None
) -> int:
    """
    Whole seconds between entering and leaving a page, never negative.

    Args:
        entered_at: When the page came into view.
        exited_at: When the page was left.
        activity_id: Used only for the clock skew log line.

    Returns:
        Duration in seconds, clamped to >= 0.
    """
    seconds = int((exited_at - entered_at).total_seconds())
    if seconds < 0:
        logger.warning(
            f"Clock skew on page activity {activity_id}: exit precedes entry "
            f"by {-seconds}s, clamping to 0",
            extra={
                "activity_id": activity_id,
                "entered_at": entered_at.isoformat(),
                "exited_at": exited_at.isoformat(),
            },
        )
        return 0
    return seconds


class PageActivityTracker:
    """Storage-backed state holder for page activities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # Writes
    # ===========================================

    async def open(
        self, session: StudySession, page_number: int, entered_at: datetime
    ) -> PageActivity:
        """Open a new activity for a page."""
        activity = PageActivity(
            session_id=session.id,
            page_number=page_number,
            entered_at=entered_at,
        )
        self.db.add(activity)
        await self.db.flush()
        return activity

    async def close(self, activity: PageActivity, exited_at: datetime) -> bool:
        """
        Close an activity, fixing its duration.

        Returns:
            True if the activity was closed by this call, False if it was
            already closed.
        """
        if activity.exited_at is not None:
            logger.debug(f"Page activity {activity.id} already closed, ignoring")
            return False

        activity.exited_at = exited_at
        activity.duration_seconds = clamp_duration(
            activity.entered_at, exited_at, activity.id
        )
        await self.db.flush()
        return True

    async def close_open(
        self, session_id: int, exited_at: datetime
    ) -> Optional[PageActivity]:
        """Close whichever activity is open in the session, if any."""
        activity = await self.get_open_activity(session_id)
        if activity is None:
            return None
        await self.close(activity, exited_at)
        return activity

    # ===========================================
    # Reads
    # ===========================================

    async def get_open_activity(self, session_id: int) -> Optional[PageActivity]:
        result = await self.db.execute(
            select(PageActivity)
            .where(
                PageActivity.session_id == session_id,
                PageActivity.exited_at.is_(None),
            )
            .order_by(PageActivity.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest_activity(self, session_id: int) -> Optional[PageActivity]:
        """Most recently opened activity, open or closed."""
        result = await self.db.execute(
            select(PageActivity)
            .where(PageActivity.session_id == session_id)
            .order_by(PageActivity.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_activities(self, session_id: int) -> list[PageActivity]:
        result = await self.db.execute(
            select(PageActivity)
            .where(PageActivity.session_id == session_id)
            .order_by(PageActivity.id)
        )
        return list(result.scalars().all())

    async def count_pages_visited(self, session_id: int) -> int:
        """Distinct pages opened in the session, including the open one."""
        result = await self.db.execute(
            select(func.count(distinct(PageActivity.page_number))).where(
                PageActivity.session_id == session_id
            )
        )
        return result.scalar() or 0

    async def session_totals(self, session_id: int) -> tuple[int, int]:
        """
        Totals for a session from its closed activities.

        total_duration is the exact sum of closed durations. pages_covered
        counts distinct pages with positive closed time, so a page left
        the instant the session ended does not count as read.

        Returns:
            (total_duration_seconds, pages_covered)
        """
        total_result = await self.db.execute(
            select(func.coalesce(func.sum(PageActivity.duration_seconds), 0)).where(
                PageActivity.session_id == session_id,
                PageActivity.exited_at.isnot(None),
            )
        )
        pages_result = await self.db.execute(
            select(func.count(distinct(PageActivity.page_number))).where(
                PageActivity.session_id == session_id,
                PageActivity.exited_at.isnot(None),
                PageActivity.duration_seconds > 0,
            )
        )
        return int(total_result.scalar() or 0), int(pages_result.scalar() or 0)

    async def page_stats(self, resource_id: int) -> PageStatsResponse:
        """
        Per-page reading statistics across all sessions of a resource.

        Revisits are summed; zero-length views are ignored.

        Args:
            resource_id: Resource to report on.

        Returns:
            PageStatsResponse ordered by page number.
        """
        result = await self.db.execute(
            select(
                PageActivity.page_number,
                func.count(PageActivity.id).label("view_count"),
                func.sum(PageActivity.duration_seconds).label("total_seconds"),
                func.max(PageActivity.duration_seconds).label("max_seconds"),
            )
            .join(StudySession, StudySession.id == PageActivity.session_id)
            .where(
                StudySession.resource_id == resource_id,
                PageActivity.exited_at.isnot(None),
                PageActivity.duration_seconds > 0,
            )
            .group_by(PageActivity.page_number)
            .order_by(PageActivity.page_number)
        )

        pages = []
        total_seconds = 0
        for row in result:
            row_total = int(row.total_seconds or 0)
            total_seconds += row_total
            pages.append(
                PageStat(
                    page_number=row.page_number,
                    view_count=row.view_count,
                    total_seconds=row_total,
                    avg_seconds=round(row_total / row.view_count, 1),
                    max_seconds=int(row.max_seconds or 0),
                )
            )

        pages_per_minute = (
            round(len(pages) / (total_seconds / 60), 2) if total_seconds > 0 else 0.0
        )

        return PageStatsResponse(
            resource_id=resource_id,
            pages=pages,
            unique_pages_viewed=len(pages),
            total_seconds=total_seconds,
            pages_per_minute=pages_per_minute,
        )

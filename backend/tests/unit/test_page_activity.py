"""
Unit Tests for the Page Activity Tracker.

Tests for:
- Duration clamping (negative durations from clock skew)
- Opening/closing activities and the single-open-activity rule
- Revisits creating separate rows that page stats sum
- Session totals used when a session closes

Test Organization:
    - TestClampDuration: Pure duration helper
    - TestOpenClose: Activity writes
    - TestSessionTotals: Totals from closed activities
    - TestPageStats: Per-page reporting across sessions
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_tracking import Resource, StudySession
from app.services.tracking.page_activity import PageActivityTracker, clamp_duration

T0 = datetime(2026, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Helpers
# =============================================================================


async def create_session(db: AsyncSession, resource: Resource) -> StudySession:
    session = StudySession(
        resource_id=resource.id,
        session_type="reading",
        started_at=T0,
        start_page=1,
        end_page=1,
        total_duration_seconds=0,
        pages_covered=0,
        is_active=True,
        distractions_count=0,
    )
    db.add(session)
    await db.flush()
    return session


# =============================================================================
# Test Classes
# =============================================================================


class TestClampDuration:
    """Tests for clamp_duration."""

    def test_positive_duration(self) -> None:
        assert clamp_duration(T0, T0 + timedelta(seconds=95)) == 95

    def test_fractional_seconds_truncate(self) -> None:
        assert clamp_duration(T0, T0 + timedelta(seconds=59, milliseconds=900)) == 59

    def test_zero_duration(self) -> None:
        assert clamp_duration(T0, T0) == 0

    def test_negative_duration_clamped_and_logged(self, caplog) -> None:
        """Exit before entry is clock skew: clamp to 0 and warn."""
        with caplog.at_level(logging.WARNING):
            result = clamp_duration(T0, T0 - timedelta(seconds=30), activity_id=7)

        assert result == 0
        assert "Clock skew" in caplog.text


class TestOpenClose:
    """Tests for opening and closing activities."""

    @pytest.mark.asyncio
    async def test_open_creates_open_activity(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        activity = await tracker.open(session, 3, T0)

        assert activity.exited_at is None
        assert activity.duration_seconds is None
        open_activity = await tracker.get_open_activity(session.id)
        assert open_activity.id == activity.id
        assert open_activity.page_number == 3

    @pytest.mark.asyncio
    async def test_close_fixes_duration(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)
        activity = await tracker.open(session, 1, T0)

        closed = await tracker.close(activity, T0 + timedelta(seconds=42))

        assert closed is True
        assert activity.duration_seconds == 42
        assert await tracker.get_open_activity(session.id) is None

    @pytest.mark.asyncio
    async def test_closing_twice_keeps_first_duration(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        """Durations are fixed at close; a second close changes nothing."""
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)
        activity = await tracker.open(session, 1, T0)
        await tracker.close(activity, T0 + timedelta(seconds=10))

        closed_again = await tracker.close(activity, T0 + timedelta(seconds=500))

        assert closed_again is False
        assert activity.duration_seconds == 10
        assert activity.exited_at == T0 + timedelta(seconds=10)

    @pytest.mark.asyncio
    async def test_close_open_without_open_activity(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        assert await tracker.close_open(session.id, T0) is None

    @pytest.mark.asyncio
    async def test_revisit_creates_new_row(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        first = await tracker.open(session, 1, T0)
        await tracker.close(first, T0 + timedelta(seconds=30))
        second = await tracker.open(session, 2, T0 + timedelta(seconds=30))
        await tracker.close(second, T0 + timedelta(seconds=60))
        revisit = await tracker.open(session, 1, T0 + timedelta(seconds=60))

        activities = await tracker.list_activities(session.id)
        assert [a.page_number for a in activities] == [1, 2, 1]
        assert revisit.id != first.id
        assert await tracker.count_pages_visited(session.id) == 2


class TestSessionTotals:
    """Tests for session_totals."""

    @pytest.mark.asyncio
    async def test_totals_sum_closed_durations(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        a = await tracker.open(session, 1, T0)
        await tracker.close(a, T0 + timedelta(seconds=100))
        b = await tracker.open(session, 2, T0 + timedelta(seconds=100))
        await tracker.close(b, T0 + timedelta(seconds=150))
        # Still open: not counted
        await tracker.open(session, 3, T0 + timedelta(seconds=150))

        total, pages = await tracker.session_totals(session.id)

        assert total == 150
        assert pages == 2

    @pytest.mark.asyncio
    async def test_zero_length_pages_not_covered(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        """A page left the instant it was entered adds no coverage."""
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        a = await tracker.open(session, 1, T0)
        await tracker.close(a, T0 + timedelta(seconds=120))
        b = await tracker.open(session, 5, T0 + timedelta(seconds=120))
        await tracker.close(b, T0 + timedelta(seconds=120))

        total, pages = await tracker.session_totals(session.id)

        assert total == 120
        assert pages == 1

    @pytest.mark.asyncio
    async def test_revisited_page_counted_once(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        t = T0
        for page in (1, 2, 1):
            activity = await tracker.open(session, page, t)
            t = t + timedelta(seconds=20)
            await tracker.close(activity, t)

        total, pages = await tracker.session_totals(session.id)

        assert total == 60
        assert pages == 2


class TestPageStats:
    """Tests for page_stats."""

    @pytest.mark.asyncio
    async def test_revisits_are_summed(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        tracker = PageActivityTracker(db_session)
        session = await create_session(db_session, resource)

        durations = [(1, 30), (2, 60), (1, 90)]
        t = T0
        for page, seconds in durations:
            activity = await tracker.open(session, page, t)
            t = t + timedelta(seconds=seconds)
            await tracker.close(activity, t)
        await db_session.commit()

        stats = await tracker.page_stats(resource.id)

        assert stats.unique_pages_viewed == 2
        assert stats.total_seconds == 180
        page_one = stats.pages[0]
        assert page_one.page_number == 1
        assert page_one.view_count == 2
        assert page_one.total_seconds == 120
        assert page_one.avg_seconds == 60.0
        assert page_one.max_seconds == 90
        assert stats.pages_per_minute == round(2 / 3, 2)

    @pytest.mark.asyncio
    async def test_empty_resource(
        self, db_session: AsyncSession, resource: Resource
    ) -> None:
        stats = await PageActivityTracker(db_session).page_stats(resource.id)

        assert stats.pages == []
        assert stats.total_seconds == 0
        assert stats.pages_per_minute == 0.0

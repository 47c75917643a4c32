"""
Unit Tests for the Streak Tracking Service.

Tests for:
- Current streak calculation (including the "as of yesterday" rule)
- Longest streak calculation
- Goal streak vs activity streak
- Milestones
- Daily stats series with gaps filled
- Today's summary

Test Organization:
    - TestStreakCalculations: Pure static helpers
    - TestComputeStreak: Streaks from stored DailyStats
    - TestStreakData: Full streak report
    - TestDailyStats: Trailing window series
    - TestTodaySummary: Today's bucket and remaining goal
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings
from app.db.models_tracking import DailyStat
from app.enums.tracking import StreakKind
from app.services.tracking.streak_tracking import StreakTrackingService

# Matches the FakeClock start (2026-03-10 09:00 UTC)
TODAY = date(2026, 3, 10)


# =============================================================================
# Helpers
# =============================================================================


async def seed_days(db: AsyncSession, days: dict[int, int], goal_seconds: int = 1800):
    """
    Insert DailyStats keyed by days before TODAY.

    Args:
        days: {days_ago: total_seconds}
        goal_seconds: Threshold for goal_met.
    """
    for days_ago, seconds in days.items():
        db.add(
            DailyStat(
                day=TODAY - timedelta(days=days_ago),
                total_seconds=seconds,
                pages_read=seconds // 60,
                session_count=1 if seconds else 0,
                resources_touched=1 if seconds else 0,
                goal_met=seconds >= goal_seconds,
            )
        )
    await db.commit()


@pytest.fixture
def service(db_session, tracking_settings, clock) -> StreakTrackingService:
    return StreakTrackingService(db_session, config=tracking_settings, clock=clock)


# =============================================================================
# Test Classes
# =============================================================================


class TestStreakCalculations:
    """Tests for the static streak helpers."""

    def test_no_dates(self) -> None:
        assert StreakTrackingService._calculate_current_streak([], TODAY) == (0, None)

    def test_streak_including_today(self) -> None:
        dates = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

        streak, start = StreakTrackingService._calculate_current_streak(dates, TODAY)

        assert streak == 3
        assert start == TODAY - timedelta(days=2)

    def test_streak_as_of_yesterday(self) -> None:
        """Today not studied yet: the streak through yesterday still counts."""
        dates = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

        streak, _ = StreakTrackingService._calculate_current_streak(dates, TODAY)

        assert streak == 2

    def test_streak_broken(self) -> None:
        dates = [TODAY - timedelta(days=2), TODAY - timedelta(days=3)]

        assert StreakTrackingService._calculate_current_streak(dates, TODAY) == (0, None)

    def test_streak_stops_at_gap(self) -> None:
        dates = [
            TODAY,
            TODAY - timedelta(days=1),
            TODAY - timedelta(days=3),
            TODAY - timedelta(days=4),
        ]

        streak, _ = StreakTrackingService._calculate_current_streak(dates, TODAY)

        assert streak == 2

    def test_longest_streak(self) -> None:
        dates = [
            TODAY - timedelta(days=d) for d in (0, 1, 5, 6, 7, 8, 20)
        ]

        assert StreakTrackingService._calculate_longest_streak(dates) == 4

    def test_longest_streak_empty(self) -> None:
        assert StreakTrackingService._calculate_longest_streak([]) == 0

    def test_count_days_in_period(self) -> None:
        dates = [TODAY - timedelta(days=d) for d in (0, 3, 6, 7, 12)]

        assert StreakTrackingService._count_days_in_period(dates, 7, TODAY) == 3


class TestComputeStreak:
    """Tests for compute_streak against stored buckets."""

    @pytest.mark.asyncio
    async def test_three_day_goal_streak(self, service, db_session) -> None:
        """D, D-1, D-2 meet the goal and D-3 does not: streak is 3."""
        await seed_days(db_session, {0: 1800, 1: 2400, 2: 1900, 3: 600})

        assert await service.compute_streak(TODAY, StreakKind.GOAL) == 3

    @pytest.mark.asyncio
    async def test_goal_streak_as_of_yesterday(self, service, db_session) -> None:
        await seed_days(db_session, {0: 300, 1: 1800, 2: 1800})

        assert await service.compute_streak(TODAY, StreakKind.GOAL) == 2

    @pytest.mark.asyncio
    async def test_gap_resets(self, service, db_session) -> None:
        await seed_days(db_session, {2: 1800, 3: 1800})

        assert await service.compute_streak(TODAY) == 0

    @pytest.mark.asyncio
    async def test_activity_streak_ignores_goal(self, service, db_session) -> None:
        await seed_days(db_session, {0: 300, 1: 60, 2: 1800, 3: 0})

        assert await service.compute_streak(TODAY, StreakKind.ACTIVITY) == 3
        assert await service.compute_streak(TODAY, StreakKind.GOAL) == 0

    @pytest.mark.asyncio
    async def test_defaults_to_today_in_timezone(self, db_session, clock) -> None:
        """01:00 UTC on the 11th is still the 10th in Los Angeles."""
        config = Settings(_env_file=None, TRACKING_TIMEZONE="America/Los_Angeles")
        service = StreakTrackingService(db_session, config=config, clock=clock)
        clock.set(datetime(2026, 3, 11, 1, 0, 0, tzinfo=timezone.utc))
        await seed_days(db_session, {0: 1800})

        assert service.today() == TODAY
        assert await service.compute_streak() == 1

    @pytest.mark.asyncio
    async def test_future_days_ignored(self, service, db_session) -> None:
        await seed_days(db_session, {-1: 1800, 0: 1800})

        assert await service.compute_streak(TODAY) == 1


class TestStreakData:
    """Tests for get_streak_data."""

    @pytest.mark.asyncio
    async def test_full_report(self, service, db_session) -> None:
        await seed_days(
            db_session,
            {0: 600, 1: 1800, 2: 1800, 3: 1800, 10: 1800, 11: 1800, 12: 1800, 13: 1800},
        )

        data = await service.get_streak_data(TODAY)

        assert data.goal_streak == 3
        assert data.goal_streak_start == TODAY - timedelta(days=3)
        assert data.activity_streak == 4
        assert data.activity_streak_start == TODAY - timedelta(days=3)
        assert data.longest_goal_streak == 4
        assert data.longest_activity_streak == 4
        assert data.last_study_date == TODAY
        assert data.is_active_today is True
        assert data.days_this_week == 4
        assert data.days_this_month == 8

    @pytest.mark.asyncio
    async def test_milestones(self, service, db_session) -> None:
        await seed_days(db_session, {d: 1800 for d in range(8)})

        data = await service.get_streak_data(TODAY)

        assert data.goal_streak == 8
        assert data.milestones_reached == [7]
        assert data.next_milestone == 14

    @pytest.mark.asyncio
    async def test_no_history(self, service) -> None:
        data = await service.get_streak_data(TODAY)

        assert data.goal_streak == 0
        assert data.activity_streak == 0
        assert data.last_study_date is None
        assert data.is_active_today is False
        assert data.milestones_reached == []
        assert data.next_milestone == 7


class TestDailyStats:
    """Tests for get_daily_stats."""

    @pytest.mark.asyncio
    async def test_gaps_filled(self, service, db_session) -> None:
        await seed_days(db_session, {0: 1800, 2: 600, 10: 900})

        result = await service.get_daily_stats(days=7)

        assert len(result.days) == 7
        assert result.days[0].date == TODAY - timedelta(days=6)
        assert result.days[-1].date == TODAY
        assert [d.total_seconds for d in result.days] == [0, 0, 0, 0, 600, 0, 1800]
        assert result.total_seconds == 2400
        assert result.goal_days == 1
        assert result.average_daily_seconds == round(2400 / 7, 1)


class TestTodaySummary:
    """Tests for get_today_summary."""

    @pytest.mark.asyncio
    async def test_remaining_goal(self, service, db_session) -> None:
        await seed_days(db_session, {0: 600, 1: 1800})

        summary = await service.get_today_summary()

        assert summary.date == TODAY
        assert summary.today.total_seconds == 600
        assert summary.remaining_goal_seconds == 1200
        assert summary.daily_goal_minutes == 30
        assert summary.goal_streak == 1
        assert summary.activity_streak == 2

    @pytest.mark.asyncio
    async def test_nothing_today(self, service) -> None:
        summary = await service.get_today_summary()

        assert summary.today.total_seconds == 0
        assert summary.remaining_goal_seconds == 1800

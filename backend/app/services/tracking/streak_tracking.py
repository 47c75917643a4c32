"""
Streak and Daily Stats Service

Derives study streaks from DailyStat buckets and reports daily activity.

Two streaks are tracked and never unified:
- goal_streak: consecutive days on which the daily goal was met
- activity_streak: consecutive days with any study time at all

A streak counts back from the reference date, or from the day before when
the reference date does not qualify yet ("as of yesterday"). One missing
day ends it.

Usage:
    from app.services.tracking.streak_tracking import StreakTrackingService

    service = StreakTrackingService(db)
    streak = await service.get_streak_data()
    days = await service.get_daily_stats(days=30)
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings
from app.db.models_tracking import DailyStat
from app.enums.tracking import StreakKind
from app.models.tracking import (
    DailyStatResponse,
    DailyStatsResponse,
    StreakData,
    TodaySummary,
)
from app.services.tracking.clock import Clock, local_date, utc_now


class StreakTrackingService:
    """
    Service for study streaks and daily activity.

    Streaks are derived on read and never stored.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the streak tracking service.

        Args:
            db: SQLAlchemy async database session.
            config: Settings override (tests); defaults to app settings.
            clock: Source of "now"; today is taken in TRACKING_TIMEZONE.
        """
        self.db = db
        self.config = config or settings
        self.clock = clock

    def today(self) -> date:
        return local_date(self.clock(), self.config.TRACKING_TIMEZONE)

    async def compute_streak(
        self, as_of: Optional[date] = None, kind: StreakKind = StreakKind.GOAL
    ) -> int:
        """
        Length of the streak of the given kind as of a date.

        Args:
            as_of: Reference date; defaults to today.
            kind: GOAL (goal_met days) or ACTIVITY (days with study time).

        Returns:
            Number of consecutive qualifying days.
        """
        as_of = as_of or self.today()
        dates = await self._fetch_qualifying_dates(kind, as_of)
        streak, _ = self._calculate_current_streak(dates, as_of)
        return streak

    async def get_streak_data(self, as_of: Optional[date] = None) -> StreakData:
        """
        Get detailed streak information.

        Returns both streaks, their longest runs, milestones (against the
        goal streak) and activity counts for the trailing week and month.

        Args:
            as_of: Reference date; defaults to today.

        Returns:
            StreakData with comprehensive streak information.
        """
        as_of = as_of or self.today()
        goal_dates = await self._fetch_qualifying_dates(StreakKind.GOAL, as_of)
        activity_dates = await self._fetch_qualifying_dates(StreakKind.ACTIVITY, as_of)

        goal_streak, goal_start = self._calculate_current_streak(goal_dates, as_of)
        activity_streak, activity_start = self._calculate_current_streak(
            activity_dates, as_of
        )
        longest_goal = self._calculate_longest_streak(goal_dates)

        milestones = self.config.STREAK_MILESTONES
        reached = [m for m in milestones if longest_goal >= m]
        next_milestone = next((m for m in milestones if m > goal_streak), None)

        return StreakData(
            goal_streak=goal_streak,
            activity_streak=activity_streak,
            longest_goal_streak=longest_goal,
            longest_activity_streak=self._calculate_longest_streak(activity_dates),
            goal_streak_start=goal_start,
            activity_streak_start=activity_start,
            last_study_date=activity_dates[0] if activity_dates else None,
            is_active_today=bool(activity_dates) and activity_dates[0] == as_of,
            days_this_week=self._count_days_in_period(activity_dates, 7, as_of),
            days_this_month=self._count_days_in_period(activity_dates, 30, as_of),
            milestones_reached=reached,
            next_milestone=next_milestone,
        )

    async def get_daily_stats(self, days: int = 30) -> DailyStatsResponse:
        """
        Daily buckets for the trailing window ending today.

        Days without a bucket are reported as zeros so the series has no
        gaps.

        Args:
            days: Window length in days, including today.
        """
        end = self.today()
        start = end - timedelta(days=days - 1)

        result = await self.db.execute(
            select(DailyStat).where(DailyStat.day >= start, DailyStat.day <= end)
        )
        by_day = {stat.day: stat for stat in result.scalars().all()}

        series = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            stat = by_day.get(day)
            series.append(self._to_response(day, stat))

        total = sum(d.total_seconds for d in series)
        return DailyStatsResponse(
            days=series,
            total_seconds=total,
            average_daily_seconds=round(total / days, 1) if days else 0.0,
            goal_days=sum(1 for d in series if d.goal_met),
        )

    async def get_today_summary(self) -> TodaySummary:
        """Today's bucket, both streaks and the goal time still to go."""
        today = self.today()
        result = await self.db.execute(select(DailyStat).where(DailyStat.day == today))
        bucket = self._to_response(today, result.scalar_one_or_none())

        goal_seconds = self.config.DAILY_GOAL_MINUTES * 60
        return TodaySummary(
            date=today,
            today=bucket,
            goal_streak=await self.compute_streak(today, StreakKind.GOAL),
            activity_streak=await self.compute_streak(today, StreakKind.ACTIVITY),
            daily_goal_minutes=self.config.DAILY_GOAL_MINUTES,
            remaining_goal_seconds=max(0, goal_seconds - bucket.total_seconds),
        )

    # ===========================================
    # Helpers
    # ===========================================

    async def _fetch_qualifying_dates(self, kind: StreakKind, as_of: date) -> list[date]:
        """
        Qualifying dates on or before as_of, most recent first.

        Args:
            kind: GOAL uses goal_met, ACTIVITY uses total_seconds > 0.
            as_of: Latest date considered.
        """
        if kind == StreakKind.GOAL:
            condition = DailyStat.goal_met.is_(True)
        else:
            condition = DailyStat.total_seconds > 0

        result = await self.db.execute(
            select(DailyStat.day)
            .where(condition, DailyStat.day <= as_of)
            .order_by(DailyStat.day.desc())
        )
        return [row[0] for row in result]

    @staticmethod
    def _to_response(day: date, stat: Optional[DailyStat]) -> DailyStatResponse:
        if stat is None:
            return DailyStatResponse(date=day)
        return DailyStatResponse(
            date=day,
            total_seconds=stat.total_seconds,
            pages_read=stat.pages_read,
            session_count=stat.session_count,
            resources_touched=stat.resources_touched,
            goal_met=stat.goal_met,
        )

    @staticmethod
    def _calculate_current_streak(
        qualifying_dates: list[date], as_of: date
    ) -> tuple[int, Optional[date]]:
        """
        Calculate the consecutive streak ending at as_of or the day before.

        The streak stays alive if the day before as_of qualifies but as_of
        itself does not yet.

        Args:
            qualifying_dates: Dates in descending order (most recent first).
            as_of: Reference date.

        Returns:
            tuple[int, Optional[date]]: Tuple containing:
                - streak_count: Number of consecutive qualifying days.
                - streak_start_date: First day of the streak, or None.
        """
        if not qualifying_dates:
            return 0, None

        most_recent = qualifying_dates[0]
        yesterday = as_of - timedelta(days=1)

        if most_recent != as_of and most_recent != yesterday:
            return 0, None

        streak = 0
        streak_start = None
        expected_date = most_recent

        for qualifying_date in qualifying_dates:
            if qualifying_date == expected_date:
                streak += 1
                streak_start = qualifying_date
                expected_date = expected_date - timedelta(days=1)
            elif qualifying_date < expected_date:
                # Gap in streak
                break

        return streak, streak_start

    @staticmethod
    def _calculate_longest_streak(qualifying_dates: list[date]) -> int:
        """
        Calculate the longest consecutive run ever achieved.

        Args:
            qualifying_dates: Dates in any order.

        Returns:
            int: Length of the longest consecutive run.
        """
        if not qualifying_dates:
            return 0

        sorted_dates = sorted(set(qualifying_dates))

        longest = 1
        current = 1

        for i in range(1, len(sorted_dates)):
            if sorted_dates[i] == sorted_dates[i - 1] + timedelta(days=1):
                current += 1
                longest = max(longest, current)
            else:
                current = 1

        return longest

    @staticmethod
    def _count_days_in_period(
        qualifying_dates: list[date], days: int, as_of: date
    ) -> int:
        """Count unique qualifying days in the `days` days ending at as_of."""
        cutoff = as_of - timedelta(days=days)
        return len({d for d in qualifying_dates if cutoff < d <= as_of})

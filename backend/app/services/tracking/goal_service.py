"""
Study Goal Service

Creates study goals and evaluates them against progress snapshots.

A goal is achieved the first time its measured value reaches the target
and stays achieved afterwards, even if the measured value later drops.

Snapshots:
- Resource-scoped goals are measured against that resource's
  ReadingProgress (plus its sessions ending today for daily_minutes).
- Global goals are measured against the DailyStat buckets.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings
from app.db.models_tracking import DailyStat, ReadingProgress, StudyGoal, StudySession
from app.enums.tracking import GoalStatus, GoalType
from app.models.tracking import (
    GoalCreateRequest,
    GoalEvaluation,
    GoalResponse,
    GoalSummary,
    ProgressSnapshot,
)
from app.services.tracking.catalog import ResourceCatalog
from app.services.tracking.clock import Clock, local_date, utc_now
from app.services.tracking.errors import GoalNotFoundError

logger = logging.getLogger(__name__)


class GoalService:
    """Goal creation, listing and evaluation."""

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.config = config or settings
        self.clock = clock

    # ===========================================
    # CRUD
    # ===========================================

    async def create_goal(self, request: GoalCreateRequest) -> GoalResponse:
        """
        Create a goal and evaluate it once against current progress.

        Raises:
            ResourceNotFoundError: If a resource scope is given but unknown.
        """
        if request.resource_id is not None:
            await ResourceCatalog(self.db).get_resource(request.resource_id)

        goal = StudyGoal(
            title=request.title,
            description=request.description,
            goal_type=request.goal_type.value,
            target_value=request.target_value,
            current_progress=0.0,
            resource_id=request.resource_id,
            deadline=request.deadline,
            is_achieved=False,
            created_at=self.clock(),
        )
        self.db.add(goal)
        await self.db.flush()

        snapshot = await self.build_snapshot(goal.resource_id)
        self.evaluate_goal(goal, snapshot)
        await self.db.commit()

        logger.info(
            f"Created goal {goal.id}: {goal.goal_type} >= {goal.target_value}",
            extra={"goal_id": goal.id, "resource_id": goal.resource_id},
        )
        return GoalResponse.model_validate(goal)

    async def list_goals(self, status: GoalStatus = GoalStatus.ALL) -> list[GoalResponse]:
        """
        List goals filtered by status.

        active: not achieved and not past its deadline.
        achieved: achieved at any point.
        overdue: not achieved and past its deadline.
        """
        today = local_date(self.clock(), self.config.TRACKING_TIMEZONE)
        query = select(StudyGoal).order_by(StudyGoal.created_at.desc(), StudyGoal.id.desc())

        if status == GoalStatus.ACHIEVED:
            query = query.where(StudyGoal.is_achieved.is_(True))
        elif status == GoalStatus.ACTIVE:
            query = query.where(
                StudyGoal.is_achieved.is_(False),
                (StudyGoal.deadline.is_(None)) | (StudyGoal.deadline >= today),
            )
        elif status == GoalStatus.OVERDUE:
            query = query.where(
                StudyGoal.is_achieved.is_(False),
                StudyGoal.deadline.isnot(None),
                StudyGoal.deadline < today,
            )

        result = await self.db.execute(query)
        return [GoalResponse.model_validate(g) for g in result.scalars().all()]

    async def summary(self, recent_limit: int = 5) -> GoalSummary:
        """
        Goal counts by status and the latest achievements.

        Statuses follow list_goals, so active + achieved + overdue equals
        the total.

        Args:
            recent_limit: Number of achieved goals to return, newest first.
        """
        today = local_date(self.clock(), self.config.TRACKING_TIMEZONE)
        overdue = (
            StudyGoal.is_achieved.is_(False)
            & StudyGoal.deadline.isnot(None)
            & (StudyGoal.deadline < today)
        )
        result = await self.db.execute(
            select(
                func.count(StudyGoal.id),
                func.sum(case((StudyGoal.is_achieved.is_(True), 1), else_=0)),
                func.sum(case((overdue, 1), else_=0)),
            )
        )
        total, achieved, overdue_count = result.one()
        achieved = achieved or 0
        overdue_count = overdue_count or 0

        recent = await self.db.execute(
            select(StudyGoal)
            .where(StudyGoal.is_achieved.is_(True))
            .order_by(StudyGoal.achieved_at.desc(), StudyGoal.id.desc())
            .limit(recent_limit)
        )

        return GoalSummary(
            total_goals=total,
            active_goals=total - achieved - overdue_count,
            achieved_goals=achieved,
            overdue_goals=overdue_count,
            recent_achievements=[
                GoalResponse.model_validate(g) for g in recent.scalars().all()
            ],
        )

    async def get_goal(self, goal_id: int) -> StudyGoal:
        goal = await self.db.get(StudyGoal, goal_id)
        if goal is None:
            raise GoalNotFoundError(
                f"Goal {goal_id} not found", details={"goal_id": goal_id}
            )
        return goal

    # ===========================================
    # Evaluation
    # ===========================================

    def evaluate_goal(self, goal: StudyGoal, snapshot: ProgressSnapshot) -> GoalEvaluation:
        """
        Evaluate a goal against a progress snapshot.

        Sets current_progress from the snapshot. The first evaluation that
        reaches target_value flips is_achieved and stamps achieved_at;
        nothing ever flips it back.

        Args:
            goal: Goal to evaluate (modified in place).
            snapshot: Values to measure against.

        Returns:
            GoalEvaluation with achieved, percentage and newly_achieved.
        """
        value = snapshot.value_for(GoalType(goal.goal_type))
        goal.current_progress = value

        newly_achieved = False
        if not goal.is_achieved and value >= goal.target_value:
            goal.is_achieved = True
            goal.achieved_at = self.clock()
            newly_achieved = True
            logger.info(
                f"Goal {goal.id} achieved: {value} >= {goal.target_value}",
                extra={"goal_id": goal.id},
            )

        percentage = min(100.0, value / goal.target_value * 100) if goal.target_value else 0.0

        return GoalEvaluation(
            goal_id=goal.id,
            achieved=goal.is_achieved,
            newly_achieved=newly_achieved,
            percentage=round(percentage, 1),
            current_progress=value,
            target_value=goal.target_value,
        )

    async def evaluate(self, goal_id: int) -> GoalEvaluation:
        """Evaluate one goal against fresh progress and persist the result."""
        goal = await self.get_goal(goal_id)
        snapshot = await self.build_snapshot(goal.resource_id)
        evaluation = self.evaluate_goal(goal, snapshot)
        await self.db.commit()
        return evaluation

    async def evaluate_all(self) -> list[GoalEvaluation]:
        """Evaluate every goal not yet achieved. Snapshots are shared per scope."""
        result = await self.db.execute(
            select(StudyGoal).where(StudyGoal.is_achieved.is_(False))
        )
        goals = result.scalars().all()

        snapshots: dict[Optional[int], ProgressSnapshot] = {}
        evaluations = []
        for goal in goals:
            if goal.resource_id not in snapshots:
                snapshots[goal.resource_id] = await self.build_snapshot(goal.resource_id)
            evaluations.append(self.evaluate_goal(goal, snapshots[goal.resource_id]))

        await self.db.commit()
        return evaluations

    async def build_snapshot(self, resource_id: Optional[int] = None) -> ProgressSnapshot:
        """
        Build the values goals are measured against.

        Args:
            resource_id: Scope to one resource, or None for all study.
        """
        if resource_id is not None:
            return await self._resource_snapshot(resource_id)
        return await self._global_snapshot()

    # ===========================================
    # Helpers
    # ===========================================

    async def _resource_snapshot(self, resource_id: int) -> ProgressSnapshot:
        result = await self.db.execute(
            select(ReadingProgress).where(ReadingProgress.resource_id == resource_id)
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            return ProgressSnapshot()

        start, end = self._today_bounds()
        today_result = await self.db.execute(
            select(func.coalesce(func.sum(StudySession.total_duration_seconds), 0)).where(
                StudySession.resource_id == resource_id,
                StudySession.is_active.is_(False),
                StudySession.ended_at >= start,
                StudySession.ended_at < end,
            )
        )
        today_seconds = today_result.scalar() or 0

        return ProgressSnapshot(
            total_minutes=progress.total_time_seconds / 60,
            daily_minutes=today_seconds / 60,
            pages_read=progress.total_pages_read,
            sessions=progress.session_count,
            completion_percentage=progress.completion_percentage,
        )

    async def _global_snapshot(self) -> ProgressSnapshot:
        totals = await self.db.execute(
            select(
                func.coalesce(func.sum(DailyStat.total_seconds), 0),
                func.coalesce(func.sum(DailyStat.pages_read), 0),
                func.coalesce(func.sum(DailyStat.session_count), 0),
            )
        )
        total_seconds, pages, sessions = totals.one()

        today = local_date(self.clock(), self.config.TRACKING_TIMEZONE)
        today_result = await self.db.execute(
            select(DailyStat.total_seconds).where(DailyStat.day == today)
        )
        today_seconds = today_result.scalar() or 0

        # Across resources, completion is the mean of per-resource completion
        completion = await self.db.execute(
            select(func.avg(ReadingProgress.completion_percentage))
        )

        return ProgressSnapshot(
            total_minutes=int(total_seconds) / 60,
            daily_minutes=today_seconds / 60,
            pages_read=int(pages),
            sessions=int(sessions),
            completion_percentage=float(completion.scalar() or 0.0),
        )

    def _today_bounds(self) -> tuple[datetime, datetime]:
        """UTC start and end of today in the tracking timezone."""
        tz = ZoneInfo(self.config.TRACKING_TIMEZONE)
        today = local_date(self.clock(), self.config.TRACKING_TIMEZONE)
        start = datetime.combine(today, time.min, tzinfo=tz)
        end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

"""
Analytics API Router

Endpoints for streaks and daily study activity.

Endpoints:
- GET /api/analytics/streak - Goal streak and activity streak
- GET /api/analytics/daily - Daily stats for a trailing window
- GET /api/analytics/today - Today's totals and remaining goal time
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_tracking_engine
from app.middleware.error_handling import handle_endpoint_errors
from app.models.tracking import DailyStatsResponse, StreakData, TodaySummary
from app.services.tracking import TrackingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/streak", response_model=StreakData)
@handle_endpoint_errors("Get streak")
async def get_streak(
    as_of: Optional[date] = Query(None, description="Reference date (defaults to today)"),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> StreakData:
    """
    Get streak information.

    Returns:
    - goal_streak: consecutive days meeting the daily goal
    - activity_streak: consecutive days with any study time
    - Longest runs, milestones, and days active this week/month
    """
    return await engine.get_streak(as_of)


@router.get("/daily", response_model=DailyStatsResponse)
@handle_endpoint_errors("Get daily stats")
async def get_daily_stats(
    days: int = Query(30, ge=1, le=365, description="Days of history"),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> DailyStatsResponse:
    """Daily study totals, oldest first, with empty days filled in."""
    return await engine.streaks.get_daily_stats(days)


@router.get("/today", response_model=TodaySummary)
@handle_endpoint_errors("Get today summary")
async def get_today_summary(
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> TodaySummary:
    """Today's totals, both streaks and the time left to meet the goal."""
    return await engine.streaks.get_today_summary()

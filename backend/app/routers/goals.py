"""
Study Goals API Router

Endpoints:
- POST /api/goals - Create a goal
- GET /api/goals - List goals by status
- GET /api/goals/summary - Counts by status and recent achievements
- POST /api/goals/{goal_id}/evaluate - Re-evaluate a goal now
"""

import logging

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_tracking_engine
from app.enums.tracking import GoalStatus
from app.middleware.error_handling import handle_endpoint_errors
from app.models.tracking import (
    GoalCreateRequest,
    GoalEvaluation,
    GoalResponse,
    GoalSummary,
)
from app.services.tracking import TrackingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/goals", tags=["goals"])


@router.post("", response_model=GoalResponse)
@handle_endpoint_errors("Create goal")
async def create_goal(
    request: GoalCreateRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> GoalResponse:
    """Create a goal; it is evaluated once against current progress."""
    return await engine.goals.create_goal(request)


@router.get("", response_model=list[GoalResponse])
@handle_endpoint_errors("List goals")
async def list_goals(
    status: GoalStatus = Query(GoalStatus.ALL),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> list[GoalResponse]:
    """List goals: active, achieved, overdue or all."""
    return await engine.goals.list_goals(status)


@router.get("/summary", response_model=GoalSummary)
@handle_endpoint_errors("Goal summary")
async def goal_summary(
    recent: int = Query(5, ge=0, le=50),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> GoalSummary:
    """Goal counts by status plus the most recently achieved goals."""
    return await engine.goals.summary(recent_limit=recent)


@router.post("/{goal_id}/evaluate", response_model=GoalEvaluation)
@handle_endpoint_errors("Evaluate goal")
async def evaluate_goal(
    goal_id: int,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> GoalEvaluation:
    """Measure a goal against current progress. Achieved goals stay achieved."""
    return await engine.goals.evaluate(goal_id)

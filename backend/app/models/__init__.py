"""Pydantic models for the application."""

from app.models.base import ErrorDetail, StrictRequest, StrictResponse
from app.models.tracking import (
    ActiveSession,
    ActiveSessionResponse,
    DailyStatResponse,
    DailyStatsResponse,
    GoalCreateRequest,
    GoalEvaluation,
    GoalResponse,
    GoalSummary,
    HeartbeatRequest,
    HeartbeatResponse,
    PageActivityResponse,
    PageChangeRequest,
    PageChangeResponse,
    PageStat,
    PageStatsResponse,
    ProgressResponse,
    ProgressSnapshot,
    ResourceResponse,
    ResourceUpsertRequest,
    SessionEndRequest,
    SessionEndResponse,
    SessionEventResponse,
    SessionHistoryResponse,
    SessionHistoryStats,
    SessionStartRequest,
    SessionStartResponse,
    SessionStats,
    StreakData,
    StudySessionResponse,
    TodaySummary,
)

__all__ = [
    "ActiveSession",
    "ActiveSessionResponse",
    "DailyStatResponse",
    "DailyStatsResponse",
    "ErrorDetail",
    "GoalCreateRequest",
    "GoalEvaluation",
    "GoalResponse",
    "GoalSummary",
    "HeartbeatRequest",
    "HeartbeatResponse",
    "PageActivityResponse",
    "PageChangeRequest",
    "PageChangeResponse",
    "PageStat",
    "PageStatsResponse",
    "ProgressResponse",
    "ProgressSnapshot",
    "ResourceResponse",
    "ResourceUpsertRequest",
    "SessionEndRequest",
    "SessionEndResponse",
    "SessionEventResponse",
    "SessionHistoryResponse",
    "SessionHistoryStats",
    "SessionStartRequest",
    "SessionStartResponse",
    "SessionStats",
    "StreakData",
    "StrictRequest",
    "StrictResponse",
    "StudySessionResponse",
    "TodaySummary",
]

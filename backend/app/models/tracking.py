"""
Pydantic Models for Study Tracking

Request/response schemas for sessions, page activity, progress, daily
stats, streaks and goals.

ARCHITECTURE NOTE:
    The SQLAlchemy counterparts live in app/db/models_tracking.py.
    Response models are built with model_validate(orm_row).
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.enums.tracking import (
    GoalType,
    ReadingDifficulty,
    SessionCloseReason,
    SessionType,
)
from app.models.base import StrictRequest, StrictResponse


# ===========================================
# Session Requests
# ===========================================


class SessionStartRequest(StrictRequest):
    """
    Request to start studying a resource.

    Any session already active for the resource is force-closed first.
    """

    resource_id: int
    start_page: int = Field(1, ge=1)
    session_type: SessionType = SessionType.READING
    session_goal: Optional[str] = Field(None, max_length=1000)


class PageChangeRequest(StrictRequest):
    """Client signal that the visible page changed."""

    from_page: int = Field(..., ge=1)
    to_page: int = Field(..., ge=1)
    timestamp: Optional[datetime] = Field(
        None, description="When the change happened; defaults to server time"
    )


class HeartbeatRequest(StrictRequest):
    """Sign of life from a client still on the same page."""

    current_page: Optional[int] = Field(None, ge=1)


class SessionEndRequest(StrictRequest):
    """Explicit end signal for the resource's active session."""

    resource_id: int
    end_page: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None
    focus_rating: Optional[int] = Field(None, ge=1, le=5)
    distractions_count: int = Field(0, ge=0)


# ===========================================
# Session Responses
# ===========================================


class PageActivityResponse(StrictResponse):
    """One viewing interval of a page."""

    id: int
    session_id: int
    page_number: int
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None


class StudySessionResponse(StrictResponse):
    """A study session as stored."""

    id: int
    resource_id: int
    session_type: SessionType
    session_goal: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    start_page: int
    end_page: int
    total_duration_seconds: int = 0
    pages_covered: int = 0
    is_active: bool
    close_reason: Optional[SessionCloseReason] = None
    last_heartbeat_at: Optional[datetime] = None
    notes: Optional[str] = None
    focus_rating: Optional[int] = None
    distractions_count: int = 0


class SessionStartResponse(StrictResponse):
    """Result of starting a session."""

    session_id: int
    session: StudySessionResponse
    superseded_session_id: Optional[int] = None


class PageChangeResponse(StrictResponse):
    """
    Result of a page change signal.

    recorded is False when the signal was a duplicate (from_page had no
    open activity) and nothing changed.
    """

    session_id: int
    recorded: bool
    current_page: int
    closed_activity: Optional[PageActivityResponse] = None


class HeartbeatResponse(StrictResponse):
    """Acknowledgement of a heartbeat."""

    session_id: int
    last_heartbeat_at: datetime
    current_page: int


class SessionStats(StrictResponse):
    """
    Statistics computed when a session ends.

    reading_speed is pages per minute and is 0 for zero-length sessions.
    """

    duration_seconds: int
    pages_covered: int
    reading_speed: float
    avg_time_per_page: float
    estimated_finish_minutes: Optional[int] = None
    difficulty: ReadingDifficulty
    progress_percentage: float


class SessionEndResponse(StrictResponse):
    """Closed session and its statistics."""

    session: StudySessionResponse
    stats: SessionStats


class ActiveSession(StudySessionResponse):
    """Active session with live values for display."""

    current_duration_seconds: int
    current_page: Optional[int] = None
    pages_visited: int = 0


class ActiveSessionResponse(StrictResponse):
    """Wrapper so "no active session" is a 200 with null."""

    active_session: Optional[ActiveSession] = None


class SessionHistoryStats(StrictResponse):
    """Aggregates over a resource's closed sessions."""

    total_sessions: int = 0
    total_seconds: int = 0
    avg_session_seconds: float = 0.0
    longest_session_seconds: int = 0
    total_pages_covered: int = 0
    avg_focus_rating: Optional[float] = None
    total_distractions: int = 0
    forced_closes: int = 0


class SessionHistoryResponse(StrictResponse):
    """Recent closed sessions for a resource."""

    resource_id: int
    stats: SessionHistoryStats
    sessions: list[StudySessionResponse] = Field(default_factory=list)


class SessionEventResponse(StrictResponse):
    """Audit record for a forced close or failed aggregation."""

    id: int
    session_id: int
    resource_id: int
    event_type: str
    reason: Optional[str] = None
    detail: Optional[dict] = None
    created_at: datetime


# ===========================================
# Progress
# ===========================================


class ProgressResponse(StrictResponse):
    """
    Running progress for a resource.

    A resource with no closed sessions reports zeros rather than 404.
    """

    resource_id: int
    current_page: int = 1
    total_pages: Optional[int] = None
    total_time_seconds: int = 0
    session_count: int = 0
    total_pages_read: int = 0
    average_reading_speed: float = 0.0
    estimated_completion_minutes: Optional[int] = None
    last_session_at: Optional[datetime] = None
    completion_percentage: float = 0.0


class PageStat(StrictResponse):
    """Time attributed to one page, summed across revisits."""

    page_number: int
    view_count: int
    total_seconds: int
    avg_seconds: float
    max_seconds: int


class PageStatsResponse(StrictResponse):
    """Per-page reading statistics for a resource."""

    resource_id: int
    pages: list[PageStat] = Field(default_factory=list)
    unique_pages_viewed: int = 0
    total_seconds: int = 0
    pages_per_minute: float = 0.0


class ResourceUpsertRequest(StrictRequest):
    """Page/length attributes published by the resource catalog."""

    title: Optional[str] = Field(None, max_length=500)
    total_pages: Optional[int] = Field(None, ge=1)


class ResourceResponse(StrictResponse):
    """A resource as known to the tracking engine."""

    id: int
    title: str
    total_pages: Optional[int] = None


# ===========================================
# Daily Stats & Streaks
# ===========================================


class DailyStatResponse(StrictResponse):
    """Aggregate study activity for one calendar date."""

    date: date
    total_seconds: int = 0
    pages_read: int = 0
    session_count: int = 0
    resources_touched: int = 0
    goal_met: bool = False


class DailyStatsResponse(StrictResponse):
    """Daily stats for a trailing window, oldest first, gaps filled."""

    days: list[DailyStatResponse] = Field(default_factory=list)
    total_seconds: int = 0
    average_daily_seconds: float = 0.0
    goal_days: int = 0


class StreakData(BaseModel):
    """
    Study streak information.

    goal_streak counts consecutive days on which the daily goal was met;
    activity_streak counts consecutive days with any study time. They are
    reported separately because they answer different questions.
    """

    goal_streak: int
    activity_streak: int
    longest_goal_streak: int
    longest_activity_streak: int
    goal_streak_start: Optional[date] = None
    activity_streak_start: Optional[date] = None
    last_study_date: Optional[date] = None
    is_active_today: bool
    days_this_week: int
    days_this_month: int
    # Milestones (based on the goal streak)
    milestones_reached: list[int] = Field(default_factory=list)
    next_milestone: Optional[int] = None


class TodaySummary(StrictResponse):
    """Today's bucket with the streaks and remaining goal time."""

    date: date
    today: DailyStatResponse
    goal_streak: int
    activity_streak: int
    daily_goal_minutes: int
    remaining_goal_seconds: int


# ===========================================
# Goals
# ===========================================


class GoalCreateRequest(StrictRequest):
    """Request to create a study goal."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    goal_type: GoalType
    target_value: float = Field(..., gt=0)
    resource_id: Optional[int] = None
    deadline: Optional[date] = None


class GoalResponse(StrictResponse):
    """A study goal as stored."""

    id: int
    title: str
    description: Optional[str] = None
    goal_type: GoalType
    target_value: float
    current_progress: float
    resource_id: Optional[int] = None
    deadline: Optional[date] = None
    is_achieved: bool
    achieved_at: Optional[datetime] = None
    created_at: datetime


class GoalSummary(StrictResponse):
    """Goal counts by status and the most recently achieved goals."""

    total_goals: int = 0
    active_goals: int = 0
    achieved_goals: int = 0
    overdue_goals: int = 0
    recent_achievements: list[GoalResponse] = Field(default_factory=list)


class GoalEvaluation(StrictResponse):
    """
    Result of evaluating a goal against a progress snapshot.

    percentage is capped at 100; newly_achieved is True only on the
    evaluation that first crossed the threshold.
    """

    goal_id: int
    achieved: bool
    newly_achieved: bool = False
    percentage: float
    current_progress: float
    target_value: float


class ProgressSnapshot(BaseModel):
    """
    Point-in-time values a goal can be measured against.

    Built from ReadingProgress for resource-scoped goals and from
    DailyStats for global goals.
    """

    total_minutes: float = 0.0
    daily_minutes: float = 0.0
    pages_read: int = 0
    sessions: int = 0
    completion_percentage: float = 0.0

    def value_for(self, goal_type: GoalType) -> float:
        """Return the snapshot value a goal of this type compares."""
        values = {
            GoalType.TOTAL_MINUTES: self.total_minutes,
            GoalType.DAILY_MINUTES: self.daily_minutes,
            GoalType.PAGES_READ: float(self.pages_read),
            GoalType.SESSIONS: float(self.sessions),
            GoalType.COMPLETION_PERCENTAGE: self.completion_percentage,
        }
        return values[goal_type]

"""
Study Tracking Enums

Defines enums for study session lifecycle, streak variants, goals and
the audit trail of compensating session transitions.
"""

from enum import Enum


class SessionType(str, Enum):
    """Kind of study activity a session represents."""

    READING = "reading"
    REVIEW = "review"
    PRACTICE = "practice"


class SessionCloseReason(str, Enum):
    """
    Why a session left the active state.

    State transitions:
    - ACTIVE → CLOSED(EXPLICIT) when the client sends an end signal
    - ACTIVE → CLOSED(SUPERSEDED) when a new session starts for the same resource
    - ACTIVE → CLOSED(EXPIRED) when the stale session reaper sweeps it
    """

    EXPLICIT = "explicit"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"


class SessionEventType(str, Enum):
    """Audit events recorded against a session."""

    FORCE_CLOSED = "force_closed"  # Superseded or expired, not ended by the client
    AGGREGATION_FAILED = "aggregation_failed"  # Left for reconciliation


class StreakKind(str, Enum):
    """
    Qualifying condition for a streak day.

    The two variants are reported side by side and never merged.
    """

    GOAL = "goal"  # DailyStat.goal_met is true
    ACTIVITY = "activity"  # Any study time recorded that day


class ReadingDifficulty(str, Enum):
    """Perceived difficulty derived from session reading speed."""

    EASY = "easy"
    NORMAL = "normal"
    CHALLENGING = "challenging"


class GoalType(str, Enum):
    """
    What a study goal measures.

    Resource-scoped goals read the resource's progress record; global goals
    read the daily stats.
    """

    TOTAL_MINUTES = "total_minutes"
    DAILY_MINUTES = "daily_minutes"
    PAGES_READ = "pages_read"
    SESSIONS = "sessions"
    COMPLETION_PERCENTAGE = "completion_percentage"


class GoalStatus(str, Enum):
    """Filter for goal listings."""

    ACTIVE = "active"
    ACHIEVED = "achieved"
    OVERDUE = "overdue"
    ALL = "all"

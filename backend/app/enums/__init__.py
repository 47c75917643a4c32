"""
Centralized enum definitions for the application.

Usage:
    from app.enums import SessionCloseReason, StreakKind

    # Or import from the module
    from app.enums.tracking import GoalType
"""

from app.enums.tracking import (
    GoalStatus,
    GoalType,
    ReadingDifficulty,
    SessionCloseReason,
    SessionEventType,
    SessionType,
    StreakKind,
)

__all__ = [
    "GoalStatus",
    "GoalType",
    "ReadingDifficulty",
    "SessionCloseReason",
    "SessionEventType",
    "SessionType",
    "StreakKind",
]

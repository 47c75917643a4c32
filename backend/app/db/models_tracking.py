"""
SQLAlchemy Database Models for Study Tracking

These models back the study session and progress tracking engine.

Tables:
- resources: Documents being studied (page count published by the catalog)
- study_sessions: Continuous study intervals against a resource
- page_activities: Continuous viewing intervals of a single page
- reading_progress: One running summary per resource
- daily_stats: One aggregate per calendar date across all resources
- daily_stat_resources: Which resources were touched on a date
- study_goals: User goals evaluated against progress snapshots
- session_events: Audit trail of forced closes and failed aggregations

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: app/models/tracking.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import List, Optional


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


from sqlalchemy import (  # noqa: E402
    JSON,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.types import UTCDateTime  # noqa: E402


# ===========================================
# Resources
# ===========================================


class Resource(Base):
    """
    An item being studied (a document).

    Created by the external catalog; the tracking engine only reads
    total_pages to compute completion.

    Attributes:
        id: Primary key.
        title: Display title.
        total_pages: Page count, null until the catalog has extracted it.
    """

    __tablename__ = "resources"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(500), default="")
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )

    sessions: Mapped[List["StudySession"]] = relationship(back_populates="resource")
    progress: Mapped[Optional["ReadingProgress"]] = relationship(
        back_populates="resource", uselist=False
    )


# ===========================================
# Sessions & Page Activity
# ===========================================


class StudySession(Base):
    """
    One continuous study interval against a resource.

    At most one session per resource has is_active=True. A session leaves
    the active state exactly once, recording why in close_reason.

    Attributes:
        id: Primary key.
        resource_id: Resource being studied.
        session_type: reading, review or practice.
        session_goal: Free-text intention set at start. Optional.
        started_at: When the session was opened.
        ended_at: When the session was closed. Null while active.
        start_page: Page the session opened on.
        end_page: Last known page; updated on every page change.
        total_duration_seconds: Sum of closed page activity durations.
        pages_covered: Distinct pages with positive closed activity time.
        is_active: Whether the session is still open.
        close_reason: explicit, superseded or expired. Null while active.
        last_heartbeat_at: Last client sign of life without a page change.
        notes: Notes submitted with the end signal.
        focus_rating: Self-reported focus (1-5). Optional.
        distractions_count: Self-reported distractions.
        aggregated_at: When the progress aggregator applied this session.
            Null until applied; guards against double counting.
    """

    __tablename__ = "study_sessions"
    __table_args__ = (
        Index("ix_study_sessions_resource_active", "resource_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), index=True)

    session_type: Mapped[str] = mapped_column(String(50), default="reading")
    session_goal: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    ended_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    start_page: Mapped[int] = mapped_column(Integer, default=1)
    end_page: Mapped[int] = mapped_column(Integer, default=1)

    total_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    pages_covered: Mapped[int] = mapped_column(Integer, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    close_reason: Mapped[Optional[str]] = mapped_column(String(20))
    last_heartbeat_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    notes: Mapped[Optional[str]] = mapped_column(Text)
    focus_rating: Mapped[Optional[int]] = mapped_column(Integer)
    distractions_count: Mapped[int] = mapped_column(Integer, default=0)

    aggregated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    resource: Mapped["Resource"] = relationship(back_populates="sessions")
    page_activities: Mapped[List["PageActivity"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PageActivity.id",
    )


class PageActivity(Base):
    """
    One continuous viewing interval of a single page within a session.

    At most one activity per session has a null exited_at. Revisiting a
    page creates a new row; durations are never merged or recomputed.

    Attributes:
        id: Primary key.
        session_id: Owning session.
        page_number: Page being viewed.
        entered_at: When the page came into view.
        exited_at: When the page was left. Null while open.
        duration_seconds: exited_at - entered_at clamped to >= 0, fixed at close.
    """

    __tablename__ = "page_activities"
    __table_args__ = (
        Index("ix_page_activities_session_open", "session_id", "exited_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("study_sessions.id"), index=True
    )
    page_number: Mapped[int] = mapped_column(Integer)

    entered_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    exited_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)

    session: Mapped["StudySession"] = relationship(back_populates="page_activities")


# ===========================================
# Progress & Daily Aggregates
# ===========================================


class ReadingProgress(Base):
    """
    Running summary of all closed sessions for one resource.

    Only the progress aggregator writes this table, and only when a
    session closes.

    Attributes:
        resource_id: Resource summarized (unique).
        current_page: end_page of the most recently applied session.
        total_time_seconds: Sum of applied session durations.
        session_count: Number of applied sessions.
        total_pages_read: Sum of applied sessions' pages_covered.
        average_reading_speed: Unweighted running mean of per-session
            pages per minute.
        estimated_completion_minutes: Remaining pages at the average speed.
        last_session_at: ended_at of the most recently applied session.
        completion_percentage: current_page / total_pages, clamped to 0-100.
        last_applied_session_id: Marker for idempotent application.
    """

    __tablename__ = "reading_progress"

    id: Mapped[int] = mapped_column(primary_key=True)
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("resources.id"), unique=True, index=True
    )

    current_page: Mapped[int] = mapped_column(Integer, default=1)
    total_time_seconds: Mapped[int] = mapped_column(Integer, default=0)
    session_count: Mapped[int] = mapped_column(Integer, default=0)
    total_pages_read: Mapped[int] = mapped_column(Integer, default=0)
    average_reading_speed: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_completion_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    last_session_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    completion_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    last_applied_session_id: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )

    resource: Mapped["Resource"] = relationship(back_populates="progress")


class DailyStat(Base):
    """
    Study activity aggregated per calendar date across all resources.

    The date is the session end date in the configured tracking timezone.
    Rows are created lazily and only ever accumulated.

    Attributes:
        day: Calendar date (unique), stored in the "date" column.
        total_seconds: Study seconds attributed to the date.
        pages_read: Sum of pages_covered for sessions ending that day.
        session_count: Sessions ending that day.
        resources_touched: Distinct resources with a session ending that day.
        goal_met: Whether total_seconds reached the daily goal.
    """

    __tablename__ = "daily_stats"

    id: Mapped[int] = mapped_column(primary_key=True)
    day: Mapped[date] = mapped_column("date", Date, unique=True, index=True)

    total_seconds: Mapped[int] = mapped_column(Integer, default=0)
    pages_read: Mapped[int] = mapped_column(Integer, default=0)
    session_count: Mapped[int] = mapped_column(Integer, default=0)
    resources_touched: Mapped[int] = mapped_column(Integer, default=0)
    goal_met: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )


class DailyStatResource(Base):
    """Distinct resources touched on a daily stat date."""

    __tablename__ = "daily_stat_resources"
    __table_args__ = (
        UniqueConstraint("daily_stat_id", "resource_id", name="uq_daily_stat_resource"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    daily_stat_id: Mapped[int] = mapped_column(ForeignKey("daily_stats.id"))
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"))


# ===========================================
# Goals
# ===========================================


class StudyGoal(Base):
    """
    A target the user is working toward.

    Once achieved, a goal stays achieved even if progress later regresses.

    Attributes:
        goal_type: What the goal measures (see GoalType).
        target_value: Threshold for achievement.
        current_progress: Value from the latest evaluation.
        resource_id: Optional resource scope.
        deadline: Optional due date.
        is_achieved: Set permanently on first crossing.
        achieved_at: When the threshold was first crossed.
    """

    __tablename__ = "study_goals"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)

    goal_type: Mapped[str] = mapped_column(String(50))
    target_value: Mapped[float] = mapped_column(Float)
    current_progress: Mapped[float] = mapped_column(Float, default=0.0)

    resource_id: Mapped[Optional[int]] = mapped_column(ForeignKey("resources.id"))
    deadline: Mapped[Optional[date]] = mapped_column(Date)

    is_achieved: Mapped[bool] = mapped_column(Boolean, default=False)
    achieved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Audit
# ===========================================


class SessionEvent(Base):
    """
    Audit record of a compensating session transition.

    Lets users see that a session was auto-ended rather than silently
    losing or inventing time.
    """

    __tablename__ = "session_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("study_sessions.id"), index=True
    )
    resource_id: Mapped[int] = mapped_column(Integer, index=True)
    event_type: Mapped[str] = mapped_column(String(50))
    reason: Mapped[Optional[str]] = mapped_column(String(50))
    detail: Mapped[Optional[dict]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)

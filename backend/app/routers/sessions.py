"""
Study Sessions API Router

Endpoints for the study session lifecycle.

Endpoints:
- POST /api/sessions/start - Start a session (supersedes an active one)
- POST /api/sessions/end - End the resource's active session
- POST /api/sessions/{session_id}/page-change - Record a page change
- POST /api/sessions/{session_id}/heartbeat - Keep a long page alive
- GET /api/sessions/active/{resource_id} - Live view of the active session
- GET /api/sessions/resource/{resource_id} - Session history with stats
- GET /api/sessions/{session_id}/pages - Page activities of a session
- GET /api/sessions/events - Forced close and aggregation failure audit
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_tracking_engine
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import ErrorDetail
from app.models.tracking import (
    ActiveSessionResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    PageActivityResponse,
    PageChangeRequest,
    PageChangeResponse,
    SessionEndRequest,
    SessionEndResponse,
    SessionEventResponse,
    SessionHistoryResponse,
    SessionStartRequest,
    SessionStartResponse,
)
from app.services.tracking import TrackingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])

NOT_FOUND = {404: {"model": ErrorDetail, "description": "Session or resource not found"}}
NOT_ACTIVE = {409: {"model": ErrorDetail, "description": "No active session"}}


# ===========================================
# Lifecycle Endpoints
# ===========================================


@router.post("/start", response_model=SessionStartResponse, responses=NOT_FOUND)
@handle_endpoint_errors("Start session")
async def start_session(
    request: SessionStartRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> SessionStartResponse:
    """
    Start studying a resource.

    If a session is already active for the resource it is closed first
    (reason: superseded) and its id is returned as superseded_session_id.
    """
    return await engine.start(
        request.resource_id,
        request.start_page,
        session_type=request.session_type,
        session_goal=request.session_goal,
    )


@router.post("/end", response_model=SessionEndResponse, responses=NOT_ACTIVE)
@handle_endpoint_errors("End session")
async def end_session(
    request: SessionEndRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> SessionEndResponse:
    """
    End the resource's active session.

    Returns the closed session with duration, pages covered, reading
    speed, difficulty and completion estimate. 409 if nothing is active.
    """
    return await engine.end(
        request.resource_id,
        end_page=request.end_page,
        notes=request.notes,
        focus_rating=request.focus_rating,
        distractions_count=request.distractions_count,
    )


@router.post(
    "/{session_id}/page-change",
    response_model=PageChangeResponse,
    responses={**NOT_FOUND, **NOT_ACTIVE},
)
@handle_endpoint_errors("Record page change")
async def record_page_change(
    session_id: int,
    request: PageChangeRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> PageChangeResponse:
    """
    Record that the visible page changed.

    A duplicate signal (from_page not open) returns recorded=false.
    """
    return await engine.page_change(
        session_id, request.from_page, request.to_page, request.timestamp
    )


@router.post(
    "/{session_id}/heartbeat",
    response_model=HeartbeatResponse,
    responses={**NOT_FOUND, **NOT_ACTIVE},
)
@handle_endpoint_errors("Session heartbeat")
async def heartbeat(
    session_id: int,
    request: HeartbeatRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> HeartbeatResponse:
    """Record a sign of life for a session that stays on one page."""
    return await engine.sessions.heartbeat(session_id, request.current_page)


# ===========================================
# Read Endpoints
# ===========================================


@router.get("/events", response_model=list[SessionEventResponse])
@handle_endpoint_errors("List session events")
async def list_session_events(
    resource_id: Optional[int] = Query(None, description="Filter by resource"),
    session_id: Optional[int] = Query(None, description="Filter by session"),
    limit: int = Query(50, ge=1, le=500),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> list[SessionEventResponse]:
    """Audit trail of auto-ended sessions and failed aggregations."""
    return await engine.sessions.list_events(
        resource_id=resource_id, session_id=session_id, limit=limit
    )


@router.get("/active/{resource_id}", response_model=ActiveSessionResponse)
@handle_endpoint_errors("Get active session")
async def get_active_session(
    resource_id: int,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> ActiveSessionResponse:
    """
    Get the resource's active session, if any.

    Includes the live duration since start and the currently open page.
    """
    return ActiveSessionResponse(active_session=await engine.get_active(resource_id))


@router.get("/resource/{resource_id}", response_model=SessionHistoryResponse)
@handle_endpoint_errors("Get session history")
async def get_session_history(
    resource_id: int,
    limit: int = Query(20, ge=1, le=200),
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> SessionHistoryResponse:
    """Recent closed sessions with totals, focus and distraction stats."""
    return await engine.sessions.list_sessions(resource_id, limit=limit)


@router.get("/{session_id}/pages", response_model=list[PageActivityResponse])
@handle_endpoint_errors("Get session pages")
async def get_session_pages(
    session_id: int,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> list[PageActivityResponse]:
    """Page activities of a session in the order they were opened."""
    return await engine.sessions.get_session_pages(session_id)

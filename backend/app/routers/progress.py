"""
Reading Progress API Router

Endpoints:
- GET /api/progress/{resource_id} - Running progress for a resource
- GET /api/progress/{resource_id}/pages - Per-page time statistics
"""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_tracking_engine
from app.middleware.error_handling import handle_endpoint_errors
from app.models.tracking import PageStatsResponse, ProgressResponse
from app.services.tracking import TrackingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.get("/{resource_id}", response_model=ProgressResponse)
@handle_endpoint_errors("Get progress")
async def get_progress(
    resource_id: int,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> ProgressResponse:
    """
    Get reading progress for a resource.

    A resource that was never studied reports zeros.
    """
    return await engine.get_progress(resource_id)


@router.get("/{resource_id}/pages", response_model=PageStatsResponse)
@handle_endpoint_errors("Get page stats")
async def get_page_stats(
    resource_id: int,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> PageStatsResponse:
    """Time per page across all sessions, revisits summed."""
    return await engine.pages.page_stats(resource_id)

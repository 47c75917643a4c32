"""
Resources API Router

The resource catalog publishes page counts here so completion can be
computed. Resource CRUD itself lives outside this service.

Endpoints:
- PUT /api/resources/{resource_id} - Create or update a resource
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_tracking_engine
from app.middleware.error_handling import handle_endpoint_errors
from app.models.tracking import ResourceResponse, ResourceUpsertRequest
from app.services.tracking import TrackingEngine

router = APIRouter(prefix="/api/resources", tags=["resources"])


@router.put("/{resource_id}", response_model=ResourceResponse)
@handle_endpoint_errors("Upsert resource")
async def upsert_resource(
    resource_id: int,
    request: ResourceUpsertRequest,
    engine: TrackingEngine = Depends(get_tracking_engine),
) -> ResourceResponse:
    """Register a resource or update its title and page count."""
    return await engine.catalog.upsert(resource_id, request)

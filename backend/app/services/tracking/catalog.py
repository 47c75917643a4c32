"""
Resource Catalog

The only view the tracking engine has of resources: their page count.
Resources are owned by an external catalog; upsert lets that catalog
publish title and page/length attributes into the store.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_tracking import Resource
from app.models.tracking import ResourceResponse, ResourceUpsertRequest
from app.services.tracking.errors import ResourceNotFoundError

logger = logging.getLogger(__name__)


class ResourceCatalog:
    """Lookup and upsert of resource page attributes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_resource(self, resource_id: int) -> Resource:
        """
        Get a resource or raise.

        Raises:
            ResourceNotFoundError: If the resource is unknown.
        """
        resource = await self.db.get(Resource, resource_id)
        if resource is None:
            raise ResourceNotFoundError(
                f"Resource {resource_id} not found",
                details={"resource_id": resource_id},
            )
        return resource

    async def get_total_pages(self, resource_id: int) -> Optional[int]:
        """Page count of a resource, or None when unknown."""
        resource = await self.db.get(Resource, resource_id)
        return resource.total_pages if resource else None

    async def upsert(
        self, resource_id: int, request: ResourceUpsertRequest
    ) -> ResourceResponse:
        """
        Create or update a resource's title and page count.

        Fields left unset in the request keep their stored values.

        Args:
            resource_id: Stable id assigned by the catalog.
            request: Attributes to publish.

        Returns:
            The stored resource.
        """
        resource = await self.db.get(Resource, resource_id)
        created = resource is None
        if created:
            resource = Resource(id=resource_id, title=request.title or "")
            self.db.add(resource)

        if request.title is not None:
            resource.title = request.title
        if request.total_pages is not None:
            resource.total_pages = request.total_pages

        await self.db.commit()
        await self.db.refresh(resource)

        action = "Registered" if created else "Updated"
        logger.info(
            f"{action} resource {resource_id} (total_pages={resource.total_pages})"
        )
        return ResourceResponse.model_validate(resource)

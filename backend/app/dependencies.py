"""
FastAPI Dependencies

Common dependencies shared by the tracking routers.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.services.tracking import TrackingEngine


async def get_tracking_engine(
    db: AsyncSession = Depends(get_db),
) -> TrackingEngine:
    """Get a tracking engine bound to the request's database session."""
    return TrackingEngine(db)

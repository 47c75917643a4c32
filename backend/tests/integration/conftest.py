"""
Integration Test Fixtures

Provides an HTTP client wired to the FastAPI app with get_db overridden,
so requests run against the per-test SQLite database from the parent
conftest and never touch a configured production database.

Note: app.main is imported inside the fixture because it reads settings
that the parent conftest prepares.
"""

from typing import AsyncGenerator

import httpx
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Async client for the app.

    Uses ASGITransport so requests run on the test's event loop, which the
    per-resource asyncio locks require. The lifespan (table creation and
    scheduler start) is not run; session_factory already created tables.
    """
    from app.db.base import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def registered_resource(api_client: httpx.AsyncClient) -> dict:
    """A 200-page resource registered through the API."""
    response = await api_client.put(
        "/api/resources/10", json={"title": "Structure and Interpretation", "total_pages": 200}
    )
    assert response.status_code == 200
    return response.json()

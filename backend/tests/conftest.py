"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.

Database:
    Each test gets a fresh SQLite file database (aiosqlite) with all tables
    created. A file rather than :memory: lets the reaper open its own
    sessions against the same data.

Time:
    Services accept a clock callable. The `clock` fixture is a FakeClock
    that only moves when a test advances it.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Settings are read when app modules are first imported, which happens at
# collection time, before any fixture runs.
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite:///:memory:"
os.environ["REAPER_ENABLED"] = "false"

from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config.settings import Settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.models_tracking import Resource  # noqa: E402
from app.services.tracking.locks import ResourceLockRegistry  # noqa: E402

# Fixed reference instant for all time-dependent tests
T0 = datetime(2026, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic stand-in for utc_now()."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    This ensures tests run with predictable configuration, overriding
    any values from .env files to ensure test isolation.
    """
    original_env = os.environ.copy()

    test_env = {
        "DATABASE_URL_OVERRIDE": "sqlite+aiosqlite:///:memory:",
        "REAPER_ENABLED": "false",
        "TRACKING_TIMEZONE": "UTC",
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def tracking_settings() -> Settings:
    """Settings with the documented defaults, independent of any .env file."""
    return Settings(
        _env_file=None,
        TRACKING_TIMEZONE="UTC",
        STALE_SESSION_THRESHOLD_MINUTES=30,
        DAILY_GOAL_MINUTES=30,
    )


@pytest.fixture
def sample_yaml_config() -> dict:
    """
    Provide a sample YAML configuration for testing.

    This matches the structure of config/default.yaml.
    """
    return {
        "app": {"name": "Test Study Tracker"},
        "database": {
            "pool_size": 3,
            "max_overflow": 5,
            "pool_timeout": 10,
        },
        "scheduler": {"misfire_grace_time": 60},
    }


# ============================================================================
# Time & Locks
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def locks() -> ResourceLockRegistry:
    """A private registry so tests never share lock state."""
    return ResourceLockRegistry()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session maker bound to a fresh SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracking.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def resource(db_session: AsyncSession) -> Resource:
    """A 100-page resource with id 1."""
    book = Resource(id=1, title="Designing Data-Intensive Applications", total_pages=100)
    db_session.add(book)
    await db_session.commit()
    return book

"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from app.config import settings

    # Access settings
    db_url = settings.DATABASE_URL
    threshold = settings.STALE_SESSION_THRESHOLD_MINUTES
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Study Tracker"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "studytracker"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "studytracker"

    # Full async URL override (e.g. sqlite+aiosqlite:///./study.db for local use)
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL(self) -> str:
        """Async connection URL used by the engine."""
        return self.DATABASE_URL_OVERRIDE or self.POSTGRES_URL

    # Tracking
    # Calendar dates for daily stats and streaks are computed in this zone.
    TRACKING_TIMEZONE: str = "UTC"

    # Stale session reaper
    REAPER_ENABLED: bool = True
    REAPER_INTERVAL_MINUTES: int = 10
    STALE_SESSION_THRESHOLD_MINUTES: int = 30

    # Daily goal used for DailyStat.goal_met
    DAILY_GOAL_MINUTES: int = 30

    # Streaks
    STREAK_MILESTONES: list[int] = [7, 14, 30, 60, 100, 365]

    # Reading difficulty bands (pages per minute)
    DIFFICULTY_CHALLENGING_PPM: float = 0.5
    DIFFICULTY_EASY_PPM: float = 2.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()

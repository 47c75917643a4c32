"""
Study Tracker API

FastAPI application for study session and progress tracking.

Startup:
    lifespan() creates tables, then starts the scheduler that runs the
    stale session reaper. Shutdown stops the scheduler.

Run:
    uvicorn app.main:app --app-dir backend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.middleware.error_handling import setup_error_handling
from app.routers import (
    analytics_router,
    goals_router,
    health_router,
    progress_router,
    resources_router,
    sessions_router,
)
from app.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}...")
    await init_db()
    logger.info("Database ready")
    start_scheduler()

    yield

    logger.info("Shutting down...")
    stop_scheduler()


app = FastAPI(
    title=settings.APP_NAME,
    description="Study session and reading progress tracking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_error_handling(app, debug=settings.DEBUG)

app.include_router(health_router.router)
app.include_router(resources_router.router)
app.include_router(sessions_router.router)
app.include_router(progress_router.router)
app.include_router(analytics_router.router)
app.include_router(goals_router.router)

"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from jury_planner.controllers.schedule_controller import router as schedule_router
from jury_planner.repository.data_repository import DataRepository
from jury_planner.services.participation_service import ParticipationService
from jury_planner.services.scheduling_service import JuryScheduleService
from jury_planner.utils.config import get_settings
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Build and wire the FastAPI application.

    Every dependency is created here and injected through ``app.state``.
    """
    settings = get_settings()

    repository = DataRepository(settings)
    schedule_service = JuryScheduleService(repository=repository, settings=settings)
    participation_service = ParticipationService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(schedule_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.schedule_service = schedule_service
    app.state.participation_service = participation_service

    return app


def _startup(app: FastAPI) -> None:
    """Idempotent startup sequence: schema first, then the optional demo seed."""
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if app.state.settings.demo_seed_enabled:
        logger.info("Startup: seeding demo department (skipped if data exists)")
        repository.seed_demo_data()

    logger.info("Startup complete; system ready")


app = create_app()

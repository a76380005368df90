"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and prepares the
database before the first request.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from labenergy.controllers.availability_controller import router as availability_router
from labenergy.controllers.catalog_controller import router as catalog_router
from labenergy.controllers.optimization_controller import router as optimization_router
from labenergy.repository.data_repository import DataRepository
from labenergy.services.availability_service import AvailabilityService
from labenergy.services.power_optimization_service import PowerOptimizationService
from labenergy.utils.config import Settings, get_settings
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency lives on app.state so controllers resolve the same
    instances that were built here.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    availability_service = AvailabilityService(repository=repository, settings=settings)
    optimization_service = PowerOptimizationService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(catalog_router)
    app.include_router(availability_router)
    app.include_router(optimization_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.availability_service = availability_service
    app.state.optimization_service = optimization_service

    return app


def _startup(app: FastAPI) -> None:
    """Idempotent startup sequence; schema must exist before seeding."""
    repository: DataRepository = app.state.repository
    settings: Settings = app.state.settings

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.synthetic_seed_enabled:
        logger.info("Startup: seeding laboratories, machines and bookings (skipped if present)")
        repository.seed_synthetic_data()

    logger.info("Startup complete | database=%s", repository.database_path)


app = create_app()

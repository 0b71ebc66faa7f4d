"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository, the availability feed, the conflict detector and
the booking engine, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from academy_booking.controllers.booking_controller import router as booking_router
from academy_booking.repository.data_repository import DataRepository
from academy_booking.services.availability_service import build_availability_provider
from academy_booking.services.booking_service import OneOnOneBookingService
from academy_booking.services.conflict_service import RepositoryConflictDetector
from academy_booking.utils.config import Settings, get_settings
from academy_booking.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    One booking engine is constructed here and exposed through app.state;
    request handlers resolve it via dependency injection rather than a
    module-level singleton.
    """
    resolved = settings or get_settings()

    # --- Repository (SQLite connection factory; the lookup collaborator) ---
    repository = DataRepository(resolved)

    # --- Collaborators behind interfaces ---
    availability_provider = build_availability_provider(repository, resolved)
    conflict_detector = RepositoryConflictDetector(repository)

    # --- Engine ---
    booking_service = OneOnOneBookingService(
        repository=repository,
        settings=resolved,
        availability_provider=availability_provider,
        conflict_detector=conflict_detector,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=resolved.app_name,
        version=resolved.app_version,
        lifespan=lifespan,
    )

    app.include_router(booking_router)

    app.state.repository = repository
    app.state.booking_service = booking_service
    app.state.api_token = resolved.api_token

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema creation must precede seeding; seeding is skipped when teachers
    already exist.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding demo academy (skipped if Teachers table not empty)")
    repository.seed_synthetic_data()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()

"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryProfileStore
from src.adapters.repository.postgres import PostgresProfileStore, run_migrations
from src.api.dependencies import build_coordinator, build_identity_gateway
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.ports import ProfileStore

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Marketplace Registration API v1 - Register accounts and verify email",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the profile store (PostgreSQL pool + migrations, or in-memory)
    - Starts the background scheduler that runs verification polls
    - Wires the identity gateway and registration coordinator
    - Stops pending polls and the scheduler, then closes the pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool: ConnectionPool | None = None
    store: ProfileStore
    if settings.profile_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        store = PostgresProfileStore(pool)
    else:
        logger.info("Using in-memory profile store")
        store = InMemoryProfileStore()

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.start()

    gateway = build_identity_gateway(settings)
    coordinator = build_coordinator(settings, store, gateway, scheduler)

    # Store adapters in app state for dependency injection
    app.state.pool = pool
    app.state.scheduler = scheduler
    app.state.gateway = gateway
    app.state.coordinator = coordinator

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    coordinator.shutdown()
    scheduler.shutdown(wait=False)
    logger.info("Background scheduler stopped")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="foodmarket-registration",
    description="Marketplace Registration API - Email verification lifecycle with "
    "single-admin and one-vendor-per-shop allocation rules",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}

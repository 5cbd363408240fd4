"""
Persons API — FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes configuration, middleware, routes, and lifecycle in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn app.main:app).

Lifecycle:
    Startup (the server accepts no traffic until this finishes):
    1. Initialize logging
    2. Validate DATABASE_URL (fail fast, never retried)
    3. Create the database engine
    4. Apply migrations with retry/backoff (MigrationError aborts startup)

    Shutdown:
    1. Dispose database engine (close all connections)

    Any exception raised before `yield` propagates to uvicorn, which logs it
    and exits without ever serving requests.
"""

import logging
import random
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from app import __version__
from app.config import settings
from app.database import dispose_engine, init_engine
from app.exceptions import (
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    PersonsApiError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import health, persons, weather
from app.services.migration_service import AlembicMigrator, MigrationRunner
from app.services.weather_service import WeatherService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    When: Called once at the start of the lifespan, before anything logs.
    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    # Alembic logs one INFO line per revision; keep those
    logging.getLogger("alembic").setLevel(logging.INFO)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manage application lifecycle: startup and shutdown procedures.

    Startup failures are fatal on purpose:
        - ConfigurationError: DATABASE_URL missing; migrations never run
        - MigrationError: schema could not be brought up to date; serving
          requests against an unmigrated schema is worse than not serving
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Persons API %s starting up...", __version__)

    try:
        database_url = settings.require_database_url()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        logger.error("Fix the configuration and restart the server.")
        raise

    init_engine(database_url)

    try:
        if settings.migrate_on_startup:
            runner = MigrationRunner(
                AlembicMigrator(database_url, script_location=settings.alembic_script_location),
                max_retries=settings.migration_max_retries,
                initial_delay=settings.migration_initial_delay,
                max_delay=settings.migration_max_delay,
            )
            await runner.run()
        else:
            logger.info("MIGRATE_ON_STARTUP is disabled; skipping schema migration")

        logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
        logger.info("API docs: http://%s:%d/swagger", settings.backend_host, settings.backend_port)
        logger.info("=" * 60)

        yield

        # ── Shutdown ──────────────────────────────────────────────────────
        logger.info("Persons API shutting down...")
    finally:
        await dispose_engine()
        logger.info("Database engine disposed.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        NotFoundError          → 404 Not Found
        DatabaseError          → 500 Internal Server Error
        PersonsApiError (base) → 500 Internal Server Error
        Exception (fallback)   → 500 Internal Server Error

    Handlers never expose stack traces or SQL in the response body.
    """

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(PersonsApiError)
    async def handle_app_error(request: Request, exc: PersonsApiError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Catch-all; the stack trace is logged server-side only.

        Starlette runs this handler outside the middleware stack, so the
        X-Request-ID header is set here rather than by RequestIDMiddleware.
        """
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
            headers={"X-Request-ID": rid} if rid else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance. The database engine is not
    created here; the lifespan does that after validating configuration.
    """
    app = FastAPI(
        title="Persons API",
        description="CRUD over persons, plus an illustrative weather forecast.",
        version=__version__,
        docs_url="/swagger",
        redoc_url=None,
        openapi_url="/swagger/v1/swagger.json",
        lifespan=lifespan,
    )

    # Explicit random source and summary list for /weatherforecast
    app.state.weather_service = WeatherService(
        rng=random.Random(settings.weather_seed),
        summaries=settings.weather_summaries,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = first).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Location"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    if settings.https_redirect:
        app.add_middleware(HTTPSRedirectMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(persons.router)
    app.include_router(weather.router)
    app.include_router(health.router)

    return app


app = create_app()

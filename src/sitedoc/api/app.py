"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sitedoc import __version__
from sitedoc.api.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    ObservabilityMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    register_exception_handlers,
)
from sitedoc.api.routers import health_router, v1_router
from sitedoc.config.settings import Settings, get_settings
from sitedoc.core.logging import get_logger, setup_logging
from sitedoc.db.config import close_db, create_engine, create_session_factory, init_db
from sitedoc.observability import get_metrics_manager
from sitedoc.reporting.factory import create_reporting_services

logger = get_logger("sitedoc.api")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)

    Returns:
        Configured FastAPI application

    Example:
        # Production
        app = create_app()

        # Testing: set app.state.session_factory and app.state.reporting
        # directly; the lifespan is not run by httpx's ASGITransport
        app = create_app(settings=Settings(ENVIRONMENT="test"))

        # Run with uvicorn
        uvicorn sitedoc.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Sitedoc Reports API",
        description="Report generation and delivery for construction-site documentation",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings on app state for access in dependencies
    app.state.settings = settings

    register_exception_handlers(app)
    _configure_middleware(app, settings)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the database and reporting components for the application's lifetime."""
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info("Starting Sitedoc Reports API", environment=settings.ENVIRONMENT)

    get_metrics_manager().publish_service_info(__version__, settings.ENVIRONMENT)

    engine = create_engine(settings)
    # Server databases are migrated with Alembic; local SQLite creates its tables
    await init_db(
        engine, create_schema=settings.is_sqlite and settings.ENVIRONMENT != "production"
    )
    session_factory = create_session_factory(engine)
    reporting = create_reporting_services(settings, session_factory)

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.reporting = reporting
    await reporting.submitter.start()
    logger.info(
        "Reporting services started",
        runner=settings.reporting.runner,
        storage_backend=settings.reporting.storage_backend,
    )

    try:
        yield
    finally:
        logger.info("Shutting down Sitedoc Reports API")
        await reporting.submitter.stop()
        await close_db(engine)
        logger.info("Database connections closed")


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Middleware order (outermost to innermost execution):
    1. ObservabilityMiddleware - Records request metrics
    2. RequestLoggingMiddleware - Logs all requests
    3. ErrorHandlingMiddleware - Converts unhandled exceptions to HTTP responses
    4. CORSMiddleware - Handles CORS (if configured)
    5. AuthenticationMiddleware - Validates Bearer token and X-User-ID
    6. RequestContextMiddleware - Sets ContextVar for request context

    Note: Middleware is added in reverse order because Starlette
    processes them from last-added to first-added.
    """
    # Innermost: Request context (needs actor from auth)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(AuthenticationMiddleware)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Content-Disposition", "X-Request-ID"],
        )

    # Error handling (catches exceptions from all inner middleware)
    app.add_middleware(ErrorHandlingMiddleware)

    app.add_middleware(RequestLoggingMiddleware)

    # Outermost: Observability
    if settings.METRICS_ENABLED:
        app.add_middleware(ObservabilityMiddleware)


def _configure_routers(app: FastAPI) -> None:
    # Health check endpoints (no prefix - at root level)
    app.include_router(health_router)

    # API v1 routers (reports, inspections)
    app.include_router(v1_router)

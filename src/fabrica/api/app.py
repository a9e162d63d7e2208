"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from fabrica import __version__
from fabrica.api.middleware import (
    CallerContextMiddleware,
    ErrorHandlingMiddleware,
    GatewayAuthMiddleware,
    ObservabilityMiddleware,
    RequestLoggingMiddleware,
)
from fabrica.api.middleware.errors import validation_exception_handler
from fabrica.api.routers import health_router, v1_router
from fabrica.config.settings import Settings, get_settings
from fabrica.config.validation import get_configuration_summary, validate_or_raise
from fabrica.core.logging import setup_logging
from fabrica.db.config import close_db, init_db
from fabrica.observability.metrics import get_metrics_manager

logger = structlog.get_logger("fabrica.api")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)

    Returns:
        Configured FastAPI application

    Example:
        # Testing
        test_settings = Settings(ENVIRONMENT="test", API_SECRET_KEY=SecretStr("test"))
        app = create_app(settings=test_settings)

        # Run with uvicorn
        uvicorn fabrica.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Fabrica Admin API",
        description="Tenant membership, invitations and self-service onboarding",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings on app state for access in middleware
    app.state.settings = settings

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    _configure_middleware(app, settings)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup fails fast on invalid configuration or an unreachable
    database.
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.log_level)
    validate_or_raise(settings)
    logger.info("application_starting", **get_configuration_summary(settings))

    get_metrics_manager().initialize(
        service_name="fabrica-admin",
        service_version=__version__,
        environment=settings.ENVIRONMENT,
    )

    await init_db(create_tables=settings.DATABASE_AUTO_CREATE)
    logger.info("database_initialized")

    yield

    logger.info("application_stopping")
    await close_db()


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Middleware order (outermost to innermost execution):
    1. ObservabilityMiddleware - Records request metrics
    2. RequestLoggingMiddleware - Logs all requests
    3. ErrorHandlingMiddleware - Converts exceptions to HTTP responses
    4. CORSMiddleware - Handles CORS (if configured)
    5. GatewayAuthMiddleware - Validates the gateway Bearer token
    6. CallerContextMiddleware - Resolves and binds the CallerContext

    Note: Middleware is added in reverse order because Starlette
    processes them from last-added to first-added.
    """
    app.add_middleware(CallerContextMiddleware)
    app.add_middleware(GatewayAuthMiddleware)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ObservabilityMiddleware)


def _configure_routers(app: FastAPI) -> None:
    # Health and metrics endpoints (no prefix - at root level)
    app.include_router(health_router)
    app.include_router(v1_router)

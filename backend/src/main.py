"""
FastAPI application entry point for the UpdateHub backend.

This module initializes the FastAPI application with:
- Object storage client and the scheduled orphan cleanup (lifespan)
- Exception handlers for consistent error responses
- Update routes (/updates) and operator routes (/api/admin)
- Logging configuration

Environment Variables:
    UPDATEHUB_ENV: Environment (production/development, default: development)
    UPDATEHUB_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL, default: INFO)
    UPDATEHUB_CLEANUP_ENABLED: Run orphan cleanup on a schedule (default: true)
    See config/settings.py for storage and URL lifetime settings.
"""

from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.src.api import updates
from backend.src.api.admin import cleanup_router, keys_router, releases_router
from backend.src.api.dependencies import init_storage
from backend.src.config.settings import get_settings
from backend.src.db.database import SessionLocal
from backend.src.services.cleanup_scheduler import CleanupScheduler
from backend.src.services.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from backend.src.utils.logging_config import init_logging, get_logger


SERVICE_NAME = "updatehub"
SERVICE_VERSION = "1.0.0"

_SERVICE_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: Create the storage client, start the cleanup scheduler
    - Shutdown: Stop the scheduler

    Args:
        app: FastAPI application instance

    Yields:
        Control to the application
    """
    # Startup
    logger = get_logger("api")
    logger.info("Starting UpdateHub backend")

    settings = get_settings()
    storage = init_storage(settings)
    if not settings.admin_configured:
        logger.warning("UPDATEHUB_ADMIN_TOKEN not set: operator endpoints will reject all requests")

    app.state.cleanup_scheduler = None
    if settings.cleanup_enabled:
        app.state.cleanup_scheduler = CleanupScheduler(settings, storage, SessionLocal)
        app.state.cleanup_scheduler.start()
    else:
        logger.info("Scheduled orphan cleanup disabled")

    logger.info("UpdateHub backend started successfully")

    yield

    # Shutdown
    logger.info("Shutting down UpdateHub backend")
    if app.state.cleanup_scheduler is not None:
        app.state.cleanup_scheduler.stop()


# Initialize logging before creating app
init_logging()

# Create FastAPI application
app = FastAPI(
    title="UpdateHub API",
    description="Self-hosted update distribution for desktop applications. "
                "Serves electron-updater manifests with staged rollout, "
                "private releases behind API keys, and presigned downloads.",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# Exception handlers


@app.exception_handler(ServiceError)
async def service_exception_handler(
    request: Request, exc: ServiceError
) -> JSONResponse:
    """
    Map service-layer errors that reached the application to HTTP statuses.

    Routes translate the errors they expect; this covers the rest.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, mapped_status in _SERVICE_ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code = mapped_status
            break

    logger = get_logger("api")
    logger.warning(
        "Service error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "status_code": status_code,
        }
    )

    if isinstance(exc, NotFoundError):
        detail = "Not found"
    elif isinstance(exc, StorageError):
        detail = "Storage temporarily unavailable"
    else:
        detail = getattr(exc, "message", None) or str(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors.

    Args:
        request: HTTP request
        exc: SQLAlchemy exception

    Returns:
        JSON response with a generic error message
    """
    logger = get_logger("db")
    logger.error(
        "Database error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database Error",
            "message": "An error occurred while accessing the database. "
                      "Please try again later.",
        }
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle all other unhandled exceptions.

    Args:
        request: HTTP request
        exc: Unhandled exception

    Returns:
        JSON response with generic error message
    """
    logger = get_logger("api")
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later.",
        }
    )


# Health check endpoint


@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status and application information
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


# API routers
app.include_router(updates.router)
app.include_router(releases_router, prefix="/api/admin")
app.include_router(keys_router, prefix="/api/admin")
app.include_router(cleanup_router, prefix="/api/admin")

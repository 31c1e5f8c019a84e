"""
Intake Desk Backend - FastAPI Application Entry Point

Practice-management API for a therapy clinic: client intake tracking,
criteria-based triage, outreach, referral clinics, email templates and
an audit trail. Storage is a relational database or a Google Sheets
spreadsheet, selected by STORAGE_BACKEND.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from .api import (
    audit_log_router,
    clients_router,
    evaluation_criteria_router,
    health_router,
    intake_sync_router,
    outreach_router,
    referral_clinics_router,
    settings_router,
    templates_router,
    text_evaluation_rules_router,
)
from .core.config import settings
from .core.database import engine, init_db
from .core.errors import BackendError, IntakeDeskError, NotFoundError
from .core.logging_config import configure_logging
from .schemas.common import ErrorResponse


configure_logging()
logger = logging.getLogger(__name__)

INSECURE_SECRET_KEY = "dev-secret-key-change-in-production"


# =============================================================================
# Performance Monitoring Middleware
# =============================================================================

class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Middleware to track API response times and log slow requests.

    Logs warnings for requests exceeding 500ms.
    Adds X-Response-Time header to all responses.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time_ms = (time.time() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"

        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms"
            )

        if settings.debug:
            logger.debug(
                f"{request.method} {request.url.path} - {process_time_ms:.2f}ms"
            )

        return response


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Refuses to start in production with the development secret key and
    creates the relational schema when the database backend is in use.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}, storage: {settings.storage_backend}")

    if settings.secret_key == INSECURE_SECRET_KEY:
        if settings.is_production:
            logger.critical("SECRET_KEY still uses the development default; refusing to start")
            raise RuntimeError("Insecure SECRET_KEY in production")
        logger.warning("Dev-default SECRET_KEY in use; this MUST be changed for production")

    if not settings.uses_sheets:
        init_db()

    yield

    logger.info("Shutting down...")
    engine.dispose()


# =============================================================================
# Application Factory
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Practice-management API for therapy client intake, triage, "
            "outreach and referrals."
        ),
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Compress responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(PerformanceMonitoringMiddleware)

    cors_origins = settings.cors_origins_list
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,  # credentials not compatible with wildcard
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Response-Time"],
    )

    app.include_router(health_router)
    app.include_router(clients_router)
    app.include_router(outreach_router)
    app.include_router(evaluation_criteria_router)
    app.include_router(referral_clinics_router)
    app.include_router(templates_router)
    app.include_router(text_evaluation_rules_router)
    app.include_router(settings_router)
    app.include_router(audit_log_router)
    app.include_router(intake_sync_router)

    register_exception_handlers(app)
    return app


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    content = body.model_dump(exclude={"details"} if details is None else None)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(IntakeDeskError)
    async def intake_desk_error_handler(request: Request, exc: IntakeDeskError) -> JSONResponse:
        """
        Map domain errors to responses.

        Backend failures are logged with detail and answered generically.
        """
        if isinstance(exc, NotFoundError):
            return _error_response(status.HTTP_404_NOT_FOUND, exc.error_code, exc.message)
        if isinstance(exc, BackendError):
            logger.error(f"Backend error on {request.method} {request.url.path}: {exc.message}")
            return _error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                exc.error_code,
                "The storage backend is unavailable. Please try again later.",
            )
        details = None
        field = getattr(exc, "field", None)
        if field:
            details = [{"field": field, "message": exc.message}]
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.error_code, exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in error["loc"][1:]) or None,
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        message = details[0]["message"] if details else "Invalid request"
        return _error_response(status.HTTP_400_BAD_REQUEST, "validation_error", message, details)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "backend_error",
            "The storage backend is unavailable. Please try again later.",
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """
        Handle ValueError exceptions.

        Returns user-friendly error response without exposing internals.
        """
        return _error_response(status.HTTP_400_BAD_REQUEST, "validation_error", str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Handle unhandled exceptions.

        Logs the error type and returns a generic message (never client data).
        """
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred. Please try again later.",
        )


app = create_application()


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint returning API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs" if settings.is_development else "disabled",
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "intake_desk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )

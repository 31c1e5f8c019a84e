"""
Health check endpoint for monitoring.

Provides health status for load balancers, monitoring systems
and container orchestration checks. No authentication.
"""

import logging

from fastapi import APIRouter

from ..core.config import settings
from ..core.database import check_db_connection
from ..schemas.common import HealthResponse
from ..utils.identifiers import utc_now


logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


def _storage_status() -> str:
    """Reachability of the configured storage backend."""
    if settings.uses_sheets:
        if settings.google_sheets_spreadsheet_id and settings.google_sheets_access_token:
            return "configured"
        return "unconfigured"
    return "connected" if check_db_connection() else "disconnected"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Returns the health status of the API and its storage backend.",
)
async def health_check() -> HealthResponse:
    """
    Health check endpoint for monitoring systems.

    The database backend is checked with ``SELECT 1``; the spreadsheet
    backend only reports whether it is configured, so the check never
    spends API quota.
    """
    storage = _storage_status()
    healthy = storage in ("connected", "configured")
    if not healthy:
        logger.warning(f"Health check: storage backend {settings.storage_backend} is {storage}")

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.app_version,
        timestamp=utc_now(),
        storage_backend=settings.storage_backend,
        storage=storage,
        environment=settings.environment,
    )

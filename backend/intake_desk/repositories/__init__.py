"""
Data-access layer.

``get_repositories`` is the FastAPI dependency routes use; it picks the
backend named by ``STORAGE_BACKEND`` and scopes it to the request.
"""

from typing import Generator

from ..core.config import settings
from ..core.database import SessionLocal
from .base import CLOSED_STATUSES, Repositories
from .database import database_repositories
from .sheets import sheets_repositories
from .sheets_client import SheetsClient


def get_repositories() -> Generator[Repositories, None, None]:
    """
    FastAPI dependency yielding the configured backend's repositories.

    The session or HTTP client lives for exactly one request.
    """
    if settings.uses_sheets:
        client = SheetsClient.from_settings(settings)
        try:
            yield sheets_repositories(client)
        finally:
            client.close()
    else:
        db = SessionLocal()
        try:
            yield database_repositories(db)
        finally:
            db.close()


__all__ = [
    "CLOSED_STATUSES",
    "Repositories",
    "SheetsClient",
    "database_repositories",
    "get_repositories",
    "sheets_repositories",
]

"""Identifier and timestamp helpers shared by both storage backends."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def new_id() -> str:
    """Fresh uuid4 string; identifiers are never reused."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

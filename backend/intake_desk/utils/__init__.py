"""Small shared helpers."""

from .identifiers import new_id, utc_now, ensure_utc

__all__ = ["new_id", "utc_now", "ensure_utc"]

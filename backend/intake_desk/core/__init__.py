"""
Core module for the Intake Desk backend.

Contains configuration, database setup, errors and security utilities.
"""

from .config import settings
from .database import engine, SessionLocal

__all__ = ["settings", "engine", "SessionLocal"]

"""
Database transaction management utilities.

Provides a context manager for safe database transactions with automatic
rollback on error. Storage failures are re-raised as ``BackendError`` so
routes never see driver-specific exceptions.

Usage:
    with transaction(db):
        db.add(obj1)
        db.add(obj2)
        # Automatically commits on success, rolls back on error
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import BackendError


logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for database transactions with automatic rollback.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session

    Raises:
        BackendError: if the store rejected the unit of work
        Any other exception raised within the context
    """
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back due to storage error: {e}")
        raise BackendError("Database operation failed") from e
    except Exception as e:
        db.rollback()
        logger.error(f"Transaction rolled back due to error: {e}")
        raise

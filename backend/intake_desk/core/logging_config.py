"""Process-wide logging setup, driven by ``LOG_LEVEL``."""

import logging

from .config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    # httpx logs every request at INFO; keep Sheets traffic at debug only.
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if settings.debug else logging.WARNING
    )

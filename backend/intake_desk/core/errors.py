"""
Domain exception taxonomy.

Routes and services raise these; ``main.py`` maps each family to a JSON
error response with a stable ``error`` code:

- ValidationFailed    -> 400 validation_error
- ConfigurationError  -> 400 configuration_error
- NotFoundError       -> 404 not_found
- BackendError        -> 503 backend_error (detail stays in the logs)
"""

from typing import Optional


class IntakeDeskError(Exception):
    """Base class for every error the service raises on purpose."""

    error_code = "intake_desk_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(IntakeDeskError):
    """Input was rejected: missing field, bad enum value, illegal transition."""

    error_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConfigurationError(IntakeDeskError):
    """Stored configuration cannot be applied (e.g. unknown criteria operator)."""

    error_code = "configuration_error"


class InvalidOperatorError(ConfigurationError):
    def __init__(self, operator: str):
        super().__init__(f"Unknown evaluation operator: {operator!r}")
        self.operator = operator


class NotFoundError(IntakeDeskError):
    """The referenced entity id does not exist."""

    error_code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class BackendError(IntakeDeskError):
    """The storage backend is unavailable or returned malformed data."""

    error_code = "backend_error"


class SheetNotFoundError(BackendError):
    """A spreadsheet tab does not exist."""

    def __init__(self, sheet_name: str):
        super().__init__(f"Sheet '{sheet_name}' not found")
        self.sheet_name = sheet_name

"""
Common Pydantic schemas shared across the application.

Contains health check, error and deletion schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response schema.

    Used by monitoring systems to verify service health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, unhealthy)"
    )
    version: str = Field(
        ...,
        description="Application version"
    )
    timestamp: datetime = Field(
        ...,
        description="Current server timestamp"
    )
    storage_backend: str = Field(
        ...,
        description="Configured storage backend (database, sheets)"
    )
    storage: str = Field(
        ...,
        description="Storage status (connected, configured, disconnected, unconfigured)"
    )
    environment: str = Field(
        ...,
        description="Runtime environment (development, production)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": "2024-01-15T10:30:00Z",
                "storage_backend": "database",
                "storage": "connected",
                "environment": "development"
            }
        }
    }


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorDetail(BaseModel):
    """
    Detail for a single validation error.
    """

    field: Optional[str] = Field(
        default=None,
        description="Field that caused the error"
    )
    message: str = Field(
        ...,
        description="Error message"
    )


class ErrorResponse(BaseModel):
    """
    Standard error response schema.

    Used for consistent error formatting across all endpoints.
    Backend failures never include internal details.
    """

    success: bool = Field(
        default=False,
        description="Always false for errors"
    )
    error: str = Field(
        ...,
        description="Error type (validation_error, not_found, backend_error, ...)"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: Optional[List[ErrorDetail]] = Field(
        default=None,
        description="Additional error details (for validation errors)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "not_found",
                "message": "Client not found",
            }
        }
    }


class DeleteResponse(BaseModel):
    success: bool = True

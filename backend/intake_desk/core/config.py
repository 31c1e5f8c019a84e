"""
Application configuration management.

Loads settings from environment variables with validation.
All secrets should be provided via environment variables, never hardcoded.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORAGE_BACKENDS = ("database", "sheets")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings for validation and type coercion.
    The storage backend is chosen here, once per process.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    environment: str = Field(default="development",
                             description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    app_name: str = Field(default="Intake Desk",
                          description="Application name")
    app_version: str = Field(
        default="1.0.0", description="Application version")

    # ==========================================================================
    # Server Settings
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # ==========================================================================
    # Storage Backend
    # ==========================================================================
    storage_backend: str = Field(
        default="database",
        description="Persistence backend: 'database' or 'sheets'"
    )

    # ==========================================================================
    # Database Settings
    # ==========================================================================
    database_url: str = Field(
        default="sqlite:///./intake_desk.db",
        description="SQLAlchemy connection string"
    )
    db_pool_size: int = Field(
        default=10, description="Database connection pool size")
    db_max_overflow: int = Field(
        default=10, description="Max overflow connections")
    db_pool_recycle: int = Field(
        default=1800, description="Connection recycle time in seconds (30 min)")
    db_pool_timeout: int = Field(
        default=30, description="Connection checkout timeout in seconds")

    # ==========================================================================
    # Google Sheets Settings
    # ==========================================================================
    google_sheets_spreadsheet_id: str = Field(
        default="",
        description="Spreadsheet holding one tab per entity"
    )
    google_sheets_access_token: str = Field(
        default="",
        description="OAuth bearer token used for the Sheets values API"
    )
    google_sheets_api_url: str = Field(
        default="https://sheets.googleapis.com/v4/spreadsheets",
        description="Base URL of the Sheets v4 API"
    )
    sheets_timeout_seconds: float = Field(
        default=15.0, description="HTTP timeout for Sheets calls")
    form_responses_sheet: str = Field(
        default="Form Responses 1",
        description="Tab the intake Google Form writes its responses to"
    )

    # ==========================================================================
    # Security Settings
    # ==========================================================================
    secret_key: str = Field(
        default="dev-secret-key-change-in-production",
        description="Secret key for JWT signing"
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="JWT access token expiration in minutes"
    )
    admin_emails: str = Field(
        default="",
        description="Comma-separated admin emails (empty = every user is admin)"
    )

    # ==========================================================================
    # Workflow Settings
    # ==========================================================================
    default_outreach_attempt_count: str = Field(
        default="3",
        description="Fallback for the outreachAttemptCount setting"
    )
    closed_clients_default_limit: int = Field(
        default=50, description="Default page size for closed clients")

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Logging level")

    # ==========================================================================
    # Computed Properties
    # ==========================================================================

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_emails_list(self) -> List[str]:
        """Parse admin emails, lowercased."""
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def uses_sheets(self) -> bool:
        return self.storage_backend == "sheets"

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Only the relational store and the spreadsheet are supported."""
        value = v.strip().lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {STORAGE_BACKENDS}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.

    Returns:
        Settings instance with all configuration values
    """
    return Settings()


settings = get_settings()

"""Configuration management for Gatehouse.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "change-me-in-production-use-openssl-rand-hex-32"


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables prefixed with
    ``GATEHOUSE_`` and from an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GATEHOUSE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "Gatehouse"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Storage Settings
    storage_backend: Literal["memory", "sql"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./gh_data/gatehouse.db"
    db_echo: bool = False

    # Identity token Settings
    secret_key: str = Field(
        default=DEFAULT_SECRET_KEY,
        description="Secret key shared with the identity provider for token signing",
    )
    access_token_expire_minutes: int = 60

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Guard redirect targets
    login_route: str = "/login"
    access_denied_route: str = "/access-denied"
    home_route: str = "/dashboard"

    # Directory behaviour
    bulk_delete_policy: Literal["abort", "skip"] = "abort"
    seed_default_modules: bool = False

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Reject an empty signing secret."""
        if not v or not v.strip():
            raise ValueError("secret_key must not be empty")
        return v

    @model_validator(mode="after")
    def validate_production_secret(self) -> "Settings":
        """Refuse to run production with the placeholder secret."""
        if self.environment == "production" and self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError(
                "GATEHOUSE_SECRET_KEY must be set to a real secret in production."
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()

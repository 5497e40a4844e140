"""
Application settings using pydantic-settings for type-safe configuration.

All environment variables are centralized here with proper typing, validation,
and sensible defaults. Settings are loaded once at startup and cached.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Production values should be set via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not defined here
        case_sensitive=False,
    )

    skip_pb_auth: bool = Field(
        default=False,
        description="Skip PocketBase authentication on startup (for testing)",
    )

    # === PocketBase Configuration ===
    pocketbase_url: str = Field(
        default="http://127.0.0.1:8090",
        description="PocketBase server URL",
    )
    pocketbase_admin_email: str = Field(
        default="admin@camp.local",
        description="PocketBase admin email for API authentication",
    )
    pocketbase_admin_password: str = Field(
        default="",
        description="PocketBase admin password (required - no default for security)",
    )

    @field_validator("pocketbase_admin_password", mode="after")
    @classmethod
    def validate_admin_password(cls, v: str) -> str:
        """Warn when the admin password is unset or a well-known default."""
        insecure_defaults = {"password", "admin", "123456", ""}
        if v in insecure_defaults:
            logging.getLogger(__name__).warning(
                "SECURITY WARNING: POCKETBASE_ADMIN_PASSWORD is not set or uses an insecure default. "
                "Set a strong password in your .env file for production use."
            )
        return v

    # === Grouping Session Store ===
    grouping_store: str = Field(
        default="pocketbase",
        description="Session store backend: 'pocketbase' or 'memory' (tests and local dev only)",
    )

    @field_validator("grouping_store", mode="after")
    @classmethod
    def validate_grouping_store(cls, v: str) -> str:
        v = v.lower()
        if v not in ("pocketbase", "memory"):
            raise ValueError(f"Invalid GROUPING_STORE: {v}. Must be 'pocketbase' or 'memory'")
        return v

    # === CORS Configuration ===
    # Note: Use str type for env var parsing, convert to list via property
    allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins string into list."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    Use this function to access settings throughout the codebase.
    """
    return Settings()

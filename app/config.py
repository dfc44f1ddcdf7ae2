# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.GITHUB_REPO_OWNER)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Upstream credentials default to empty and are checked when first used,
# so a misconfigured server still answers /health and the repair CLI runs
# without storage settings.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Media Host (Supabase Storage)
    # -------------------------------------------------------------------------

    SUPABASE_URL: str = Field(
        default="",
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        default="",
        description="Supabase service_role key used for storage uploads"
    )

    STORAGE_BUCKET: str = Field(
        default="builds",
        description="Public storage bucket holding icons and project archives"
    )

    ICON_FOLDER: str = Field(
        default="aite_studio/icons",
        description="Folder inside the bucket for uploaded icons"
    )

    PROJECT_FOLDER: str = Field(
        default="aite_studio/web-projects",
        description="Folder inside the bucket for project archives"
    )

    UPLOAD_TIMEOUT: int = Field(
        default=300,
        ge=1,
        description="Storage upload timeout in seconds"
    )

    UPLOAD_RETRIES: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per storage upload (1 = no retry)"
    )

    # -------------------------------------------------------------------------
    # CI Platform (GitHub)
    # -------------------------------------------------------------------------
    # Empty by default: requests fail with MISSING_ENV until these are set

    GITHUB_TOKEN: str = Field(
        default="",
        description="Token with permission to dispatch workflows and read releases"
    )

    GITHUB_REPO_OWNER: str = Field(
        default="",
        description="Owner of the repository hosting the build workflow"
    )

    GITHUB_REPO_NAME: str = Field(
        default="",
        description="Repository hosting the build workflow"
    )

    GITHUB_API_URL: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )

    DISPATCH_EVENT_TYPE: str = Field(
        default="build-web2apk",
        description="repository_dispatch event type the workflow listens for"
    )

    # -------------------------------------------------------------------------
    # Build Repair (OpenAI-compatible chat completions)
    # -------------------------------------------------------------------------

    REPAIR_API_KEY: str = Field(
        default="",
        description="API key for the build repair model"
    )

    REPAIR_API_URL: str = Field(
        default="https://api.z.ai/v1",
        description="Base URL of an OpenAI-compatible API"
    )

    REPAIR_MODEL: str = Field(
        default="glm-4",
        description="Model used to propose build fixes"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # File Upload Settings
    # -------------------------------------------------------------------------

    MAX_FILE_SIZE_MB: int = Field(
        default=500,
        ge=1,
        description="Maximum size of a single uploaded file in MB"
    )

    MAX_ICON_SIZE_MB: int = Field(
        default=10,
        ge=1,
        description="Maximum icon size in MB"
    )

    MAX_FILES: int = Field(
        default=2000,
        ge=1,
        description="Maximum number of project files per request"
    )

    LARGE_UPLOAD_THRESHOLD_MB: int = Field(
        default=50,
        ge=1,
        description="Archives above this size are uploaded from disk"
    )

    UPLOAD_STRATEGY: Literal["memory", "disk"] = Field(
        default="memory",
        description="Keep incoming project files in memory or spool them to TEMP_DIR"
    )

    TEMP_DIR: str = Field(
        default="/tmp/buildrelay",
        description="Working directory for per-request scratch space"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def max_icon_size_bytes(self) -> int:
        return self.MAX_ICON_SIZE_MB * 1024 * 1024

    @property
    def large_upload_threshold_bytes(self) -> int:
        return self.LARGE_UPLOAD_THRESHOLD_MB * 1024 * 1024

    @property
    def github_configured(self) -> bool:
        """True when every setting needed to talk to GitHub is present."""
        return bool(self.GITHUB_TOKEN and self.GITHUB_REPO_OWNER and self.GITHUB_REPO_NAME)

    @property
    def repair_configured(self) -> bool:
        return bool(self.REPAIR_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()

"""
Inkbook — Application Configuration
Loads all environment variables via pydantic-settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    APP_NAME: str = "Inkbook"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:8081"]

    # ── Persistence ──────────────────────────────────────────────────────
    STORAGE_BACKEND: Literal["memory", "supabase"] = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # ── Notifications ────────────────────────────────────────────────────
    NOTIFICATION_WEBHOOK_URL: str = ""  # empty → log-only delivery

    # ── Booking Lifecycle ────────────────────────────────────────────────
    AUTO_PENDING_DELAY_SECONDS: float = 1.0
    ALTERNATIVE_SEARCH_DAYS: int = 3
    DEFAULT_SLOT_DURATION_MINS: int = 60
    LEGAL_TERMS_VERSION: str = "2024-01"

    # ── Retry / Resilience ───────────────────────────────────────────────
    COLLABORATOR_TIMEOUT_SECONDS: float = 5.0
    EXTERNAL_API_MAX_RETRIES: int = 3
    EXTERNAL_API_RETRY_DELAY: float = 0.5
    EXTERNAL_API_RETRY_MAX_DELAY: float = 30.0


@lru_cache()
def get_settings() -> Settings:
    """Cached singleton for app settings."""
    return Settings()

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Component configs (matching, scoring, lifecycle, cloud) are derived from
    these values through their ``from_settings`` constructors.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging verbosity."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging and development features."""

    # Persistence
    DATABASE_URL: Optional[str] = None
    """Key/value store URL. If None, uses a local SQLite file."""

    # Parsing defaults
    DEFAULT_CURRENCY: str = "SAR"
    """Currency used when a message carries no recognisable currency."""

    FUZZY_MATCH_THRESHOLD: float = 0.85
    """Minimum structure similarity for a fuzzy template match."""

    FAILURE_LOG_MAX_ENTRIES: int = 100
    """Size of the parsing-failure ring buffer."""

    # Optional cloud classifier
    CLOUD_CLASSIFIER_URL: Optional[str] = None
    """Endpoint of the external classifier. Disabled when unset."""

    CLOUD_CLASSIFIER_TOKEN: Optional[str] = None
    """Bearer token sent to the cloud classifier."""

    CLOUD_TIMEOUT_SECONDS: float = 5.0
    """Hard bound on a single cloud classification call."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or "sqlite:///./smartpaste.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()

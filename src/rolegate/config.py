"""Configuration using pydantic-settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import RedisDsn, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rolegate.core.constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_NAMESPACE,
    DEFAULT_CACHE_TTL,
)


class Settings(BaseSettings):
    """Settings loaded from ROLEGATE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROLEGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"  # development, staging, production

    # Database
    database_url: str = "sqlite+aiosqlite:///./rolegate.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_echo: bool = False

    # Permission cache
    cache_backend: Literal["memory", "redis", "none"] = "memory"
    cache_ttl: int = DEFAULT_CACHE_TTL
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    cache_namespace: str = DEFAULT_CACHE_NAMESPACE
    redis_url: RedisDsn = RedisDsn("redis://localhost:6379")

    # Logging
    log_level: str = "INFO"
    log_json: bool | None = None

    # Seeding
    seed_file: Path | None = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level and reject unknown names.

        Args:
            v: The configured level name

        Returns:
            The upper-cased level name

        Raises:
            ValueError: If the level is not a standard logging level
        """
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("cache_ttl")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache_ttl must be a positive number of seconds")
        return v

    @field_validator("cache_max_entries")
    @classmethod
    def validate_cache_max_entries(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache_max_entries must be positive")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def render_json_logs(self) -> bool:
        """JSON logs are the production default unless configured explicitly."""
        if self.log_json is not None:
            return self.log_json
        return self.is_production


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

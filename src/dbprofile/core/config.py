"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: DBPROFILE_
    """

    model_config = SettingsConfigDict(
        env_prefix="DBPROFILE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unrelated env vars (PGPASSWORD etc.)
    )

    # Database (SQLAlchemy URL of the database to profile)
    database_url: str = Field(
        default="sqlite:///./dbprofile.db",
        description="SQLAlchemy database URL, e.g. postgresql+psycopg://user@host/db",
    )
    connect_timeout: int = Field(
        default=10,
        description="Seconds to wait when establishing a connection",
    )

    # Scheduling
    max_workers: int = Field(
        default=0,
        description="Parallel table workers (0 = number of CPUs)",
    )

    # Logging
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="console")  # 'json' or 'console'

    def resolved_workers(self) -> int:
        """Worker count with the auto-detect fallback applied."""
        if self.max_workers > 0:
            return self.max_workers
        return os.cpu_count() or 1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Configuration management for the scheduling engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlannerSettings(BaseSettings):
    """Settings loaded from ``PLANNER_*`` environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="PLANNER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Persistence
    backend: Literal["memory", "sql"] = Field(default="memory")
    database_url: str = Field(default="sqlite+pysqlite:///:memory:")
    sql_echo: bool = Field(default=False)

    # Day buckets
    bucket_create_retries: int = Field(default=3, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> PlannerSettings:
    """Get cached settings instance."""
    return PlannerSettings()

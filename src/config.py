"""Centralized settings management using pydantic-settings.

All environment variables are prefixed with ``GLOWREC_`` and may also be
set in a ``.env`` file. Use get_settings() to access the cached instance.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional environment variables:
        - GLOWREC_CATALOG_PATH: JSON or CSV product catalog to load
        - GLOWREC_LEDGER_PATH: JSON-lines activity ledger (in-memory if unset)
        - GLOWREC_LOG_LEVEL: Logging level (default: INFO)
        - GLOWREC_SIGNAL_TIMEOUT_SECONDS: Budget for gathering user signals
    """

    model_config = SettingsConfigDict(
        env_prefix="GLOWREC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    catalog_path: Optional[str] = Field(default=None, description="Product catalog file")
    ledger_path: Optional[str] = Field(default=None, description="Activity ledger file")
    log_level: str = Field(default="INFO", description="Logging level")

    default_limit: int = Field(default=10, ge=1)
    similar_default_limit: int = Field(default=8, ge=1)
    max_limit: int = Field(default=100, ge=1)

    signal_timeout_seconds: float = Field(
        default=2.0, gt=0, description="Request budget for preference signal reads"
    )
    signal_workers: int = Field(
        default=8,
        ge=1,
        description="Shared pool size; each personalized request queues six reads",
    )
    filter_sample_size: int = Field(default=50, ge=1)
    allow_interacted_backfill: bool = Field(
        default=False,
        description="Let already-interacted products top up a short personalized list",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level '{v}'")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

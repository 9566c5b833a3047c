"""Configuration management via pydantic-settings.

All configuration is loaded from environment variables and/or a .env file.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Storage / logging ---
    database_path: str = "data/classifier.db"
    log_level: str = "INFO"

    # --- Fetching ---
    fetch_timeout_seconds: float = 30.0
    fetch_retry_attempts: int = 2
    fetch_retry_delay_seconds: float = 1.0

    # --- Content cache ---
    content_ttl_minutes: int = 30
    metadata_ttl_hours: int = 2

    # --- Orchestration ---
    dependent_job_delay_minutes: int = 3
    content_refetch_delay_minutes: int = 2
    max_content_waits: int = 3
    stuck_job_minutes: int = 30
    job_retry_delay_seconds: int = 30

    # --- Aggregation ---
    confidence_half_life_days: float | None = None

    # --- LLM ---
    anthropic_api_key: str | None = None
    llm_model: str = "claude-haiku-4-5-20251001"

    # ---- Validators ----

    @field_validator("log_level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("fetch_retry_attempts")
    @classmethod
    def _valid_retry_attempts(cls, v: int) -> int:
        if v < 0 or v > 5:
            raise ValueError("FETCH_RETRY_ATTEMPTS must be between 0 and 5")
        return v

    @field_validator("max_content_waits")
    @classmethod
    def _valid_content_waits(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("MAX_CONTENT_WAITS must be between 0 and 10")
        return v

    @field_validator(
        "fetch_timeout_seconds",
        "content_ttl_minutes",
        "metadata_ttl_hours",
        "stuck_job_minutes",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("confidence_half_life_days")
    @classmethod
    def _valid_half_life(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("CONFIDENCE_HALF_LIFE_DAYS must be positive when set")
        return v

    @model_validator(mode="after")
    def _ensure_db_parent_dir(self) -> Config:
        """Auto-create parent directory for database file."""
        db_path = Path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return self

    # ---- Convenience properties ----

    @property
    def llm_enabled(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def content_ttl(self) -> timedelta:
        return timedelta(minutes=self.content_ttl_minutes)

    @property
    def metadata_ttl(self) -> timedelta:
        return timedelta(hours=self.metadata_ttl_hours)

    @property
    def dependent_job_delay(self) -> timedelta:
        return timedelta(minutes=self.dependent_job_delay_minutes)

    @property
    def content_refetch_delay(self) -> timedelta:
        return timedelta(minutes=self.content_refetch_delay_minutes)

    @property
    def job_retry_delay(self) -> timedelta:
        return timedelta(seconds=self.job_retry_delay_seconds)

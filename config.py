"""
Configuration settings for the Gnosis adaptive learning engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///gnosis.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    # ========================================
    # Content Generation Service
    # ========================================
    content_api_url: str | None = Field(
        default=None,
        description="Base URL of the content generation service (offline templates when unset)",
    )
    content_api_key: str | None = Field(
        default=None,
        description="API key sent to the content generation service",
    )
    content_api_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for content generation requests",
    )

    # ========================================
    # History Windows
    # ========================================
    history_session_limit: int = Field(
        default=50,
        ge=1,
        description="Most recent sessions read per analysis run",
    )
    history_assessment_limit: int = Field(
        default=100,
        ge=1,
        description="Most recent assessments read per analysis run",
    )
    history_analytics_limit: int = Field(
        default=30,
        ge=1,
        description="Most recent daily analytics rows read per analysis run",
    )
    skill_assessment_limit: int = Field(
        default=50,
        ge=1,
        description="Recent assessments considered when scoring a skill",
    )

    # ========================================
    # Recommendations
    # ========================================
    recommendation_candidate_count: int = Field(
        default=3,
        ge=1,
        description="Lowest-mastery skills considered per generation run",
    )

    # ========================================
    # Guided Sessions
    # ========================================
    session_tick_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Wall-clock seconds between session clock ticks",
    )
    metrics_refresh_seconds: int = Field(
        default=10,
        ge=1,
        description="Elapsed seconds between live metric refreshes",
    )
    default_step_minutes: float = Field(
        default=5.0,
        gt=0,
        description="Expected step duration when content gives no estimate",
    )

    # ========================================
    # Persistence Outbox
    # ========================================
    sync_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Delivery attempts before an intent is dead-lettered",
    )
    sync_base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="First retry delay; doubles on each failure",
    )
    sync_max_delay_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Upper bound for the retry delay",
    )
    sync_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between background outbox flushes",
    )

    def get_history_limits(self) -> dict[str, int]:
        """Get the bounded history window sizes as a dictionary."""
        return {
            "sessions": self.history_session_limit,
            "assessments": self.history_assessment_limit,
            "analytics": self.history_analytics_limit,
            "skill_assessments": self.skill_assessment_limit,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

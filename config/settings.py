"""Application settings and configuration management."""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/mock_interview.db")
    LLM_CONFIG_PATH: str = Field(default="app_config.json")

    SESSION_TTL_SECONDS: int = Field(default=86400, ge=1)
    COMPLETED_TTL_SECONDS: int = Field(default=7776000, ge=1)

    MONTHLY_SESSION_ALLOTMENT: int = Field(default=1, ge=0)
    QUOTA_TIMEZONE: str = "Asia/Tokyo"
    QUOTA_CONSUME_AT: Literal["summarize", "start"] = "summarize"

    ANSWER_TIME_LIMIT: int = Field(default=120, ge=1)
    FOLLOWUPS_ENABLED: bool = True
    SUMMARY_NARRATIVE_ENABLED: bool = False

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()

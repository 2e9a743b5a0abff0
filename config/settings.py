"""Application settings and configuration management."""
from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    SQLITE_TIMEOUT_S: float = Field(default=30.0, gt=0)

    MAX_QUESTIONS: int = Field(default=5, ge=1)
    MAX_QUESTIONS_LIMIT: int = Field(default=20, ge=1)
    # Unset means idle sessions are never rejected; the reaper decides.
    SESSION_IDLE_TIMEOUT_S: Optional[int] = Field(default=None, ge=1)

    ANALYZER_TIMEOUT_S: float = Field(default=20.0, gt=0)
    GENERATOR_TIMEOUT_S: float = Field(default=20.0, gt=0)
    SUMMARIZER_TIMEOUT_S: float = Field(default=30.0, gt=0)
    COLLABORATOR_WORKERS: int = Field(default=8, ge=1)

    DEFAULT_REPORT_SCORE: float = 75.0

    PLANS_PATH: str = "config/plans.yaml"
    LLM_CONFIG_PATH: str = "app_config.json"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()

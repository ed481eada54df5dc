"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from studyflow.config import settings

    # Access settings
    db_url = settings.POSTGRES_URL
    heartbeat = settings.SESSION_HEARTBEAT_SECONDS
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "StudyFlow"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "studyflow"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "studyflow"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def POSTGRES_URL_SYNC(self) -> str:
        """Sync PostgreSQL connection URL for migrations and admin scripts."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Session tracker timings
    # The tick only drives UI refresh; elapsed time is always derived from timestamps.
    SESSION_TICK_SECONDS: int = 1
    SESSION_HEARTBEAT_SECONDS: int = 30
    SESSION_TIMEOUT_WARNING_MINUTES: int = 25
    SESSION_AUTO_END_MINUTES: int = 30

    # Routes (path prefixes) on which the user counts as studying
    STUDY_ROUTE_PREFIXES: list[str] = [
        "/flashcards",
        "/notes",
        "/quiz",
        "/quizzes",
        "/study",
    ]

    # SM-2 spaced repetition
    SM2_DEFAULT_EASE: float = 2.5
    SM2_MIN_EASE: float = 1.3
    SM2_PASS_THRESHOLD: int = 3

    # Review listing
    REVIEW_DUE_DEFAULT_LIMIT: int = 50
    SESSION_HISTORY_DEFAULT_LIMIT: int = 20

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()

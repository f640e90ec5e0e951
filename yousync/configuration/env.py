"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from yousync.utils.constants import (
    DEFAULT_GITHUB_API_URL,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_OPEN_STATE_NAME,
    DEFAULT_RESOLVED_STATE_NAME,
    DEFAULT_STATE_DIR,
    DEFAULT_STATE_FIELD_NAME,
)


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generic application-wide settings
    DEBUG: bool = False

    # GitHub API settings
    GITHUB_API_URL: str = DEFAULT_GITHUB_API_URL
    YOUSYNC_GITHUB_TOKEN: str | None = None

    # YouTrack API settings
    YOUSYNC_YOUTRACK_TOKEN: str | None = None
    YOUSYNC_STATE_FIELD: str = DEFAULT_STATE_FIELD_NAME
    YOUSYNC_OPEN_STATE: str = DEFAULT_OPEN_STATE_NAME
    YOUSYNC_RESOLVED_STATE: str = DEFAULT_RESOLVED_STATE_NAME

    # Synchronization settings
    YOUSYNC_STATE_DIR: Path = Path(DEFAULT_STATE_DIR)
    YOUSYNC_MAX_CONCURRENCY: int = DEFAULT_MAX_CONCURRENCY

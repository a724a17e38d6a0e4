"""Centralized settings module for the chat client core.

Settings can be configured via environment variables or a ``.env`` file.

Usage:
    from a2a_chat.core.settings import get_settings

    settings = get_settings()
    print(settings.gateway.url)
    print(settings.storage.snapshot_path)
"""
import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from a2a_chat.constants import TITLE_TRUNCATE_LENGTH


class GatewaySettings(BaseSettings):
    """Gateway connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the agent gateway (discovery and agent endpoints live under it)"
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for discovery and synchronous calls"
    )
    stream_read_timeout: float | None = Field(
        default=None,
        description="Read timeout in seconds between stream chunks (unset waits indefinitely)"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return v.rstrip("/")


class StorageSettings(BaseSettings):
    """Conversation snapshot persistence settings."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Persist conversation snapshots to disk"
    )
    snapshot_path: str = Field(
        default="data/conversations.json",
        description="JSON file holding the persisted snapshot"
    )
    snapshot_key: str = Field(
        default="a2a-conversations",
        description="Key under which the snapshot is stored in the file"
    )


class ChatSettings(BaseSettings):
    """Conversation presentation defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    title_max_length: int = Field(
        default=TITLE_TRUNCATE_LENGTH,
        ge=2,
        description="Maximum length of a conversation title derived from the first message"
    )


class LoggingSettings(BaseSettings):
    """Logging settings for the ``a2a_chat`` logger."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Log level applied to the a2a_chat logger"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize to an upper-case name the logging module knows."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v!r}")
        return level


class Settings(BaseSettings):
    """Root settings class containing all configuration sections."""

    model_config = SettingsConfigDict(env_prefix="", env_nested_delimiter="__")

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are cached for performance. The cache is populated on first call
    and reused for subsequent calls.

    Returns:
        Settings: The client settings instance.
    """
    return Settings()

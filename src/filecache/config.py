"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        FILECACHE_DIR: Directory holding the bucket files
        FILECACHE_EXT: Bucket file extension (with leading dot)
        FILECACHE_DEFAULT_TTL: Default bucket TTL in seconds
        LOG_LEVEL: Logging level
        LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    FILECACHE_DIR: Path = Field(
        default=Path(".filecache"), description="Directory holding bucket files"
    )
    FILECACHE_EXT: str = Field(default=".cache", description="Bucket file extension")
    FILECACHE_DEFAULT_TTL: float = Field(
        default=3600.0, gt=0.0, description="Default bucket TTL in seconds"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("FILECACHE_EXT")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Validate that the extension is a dot followed by a name."""
        if not v.startswith(".") or len(v) < 2:
            raise ValueError("FILECACHE_EXT must start with '.' and name an extension")
        if "/" in v or "\\" in v:
            raise ValueError("FILECACHE_EXT must not contain path separators")
        return v

    def display(self) -> dict[str, str | float | None]:
        """Return settings as plain values for display."""
        return {
            "FILECACHE_DIR": str(self.FILECACHE_DIR),
            "FILECACHE_EXT": self.FILECACHE_EXT,
            "FILECACHE_DEFAULT_TTL": self.FILECACHE_DEFAULT_TTL,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

"""Application settings powered by Pydantic BaseSettings."""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment configuration for the command line."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENT_FETCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    state_path: Path | None = Field(
        default=None, description="SQLite database for freshness markers"
    )
    ca_bundle: Path | None = Field(
        default=None, description="PEM bundle of CAs trusted for HTTPS"
    )
    config_path: Path | None = Field(
        default=None, description="YAML file with fetch configuration"
    )
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def log_level_number(self) -> int:
        """Numeric logging level, falling back to INFO for unknown names."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()

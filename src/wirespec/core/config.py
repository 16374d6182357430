"""Runtime configuration, read from `WIRESPEC_*` environment variables or `.env`."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PathEncoding = Literal["percent", "raw"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WIRESPEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Minimum level emitted by the CLI log sink",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="console: human readable, json: one serialized record per line",
    )
    path_encoding: PathEncoding = Field(
        default="percent",
        description="Default escaping of path parameters in generated codecs",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

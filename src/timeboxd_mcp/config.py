"""Configuration management for timeboxd."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimeboxdSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    database_path: Path = Field(
        default=Path("./storage/timeboxd.db"), validation_alias="TIMEBOXD_DATABASE_PATH"
    )
    log_level: str = Field(default="INFO", validation_alias="TIMEBOXD_LOG_LEVEL")
    idle_auto_stop_enabled: bool = Field(
        default=True, validation_alias="TIMEBOXD_IDLE_AUTO_STOP_ENABLED"
    )
    idle_timeout_minutes: int = Field(default=5, validation_alias="TIMEBOXD_IDLE_TIMEOUT_MINUTES")
    local_timezone: str | None = Field(default=None, validation_alias="TIMEBOXD_LOCAL_TIMEZONE")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TIMEBOXD_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("idle_timeout_minutes")
    @classmethod
    def _validate_idle_timeout(cls, value: int) -> int:
        if value < 1:
            raise ValueError("TIMEBOXD_IDLE_TIMEOUT_MINUTES must be >= 1")
        return value

    @field_validator("local_timezone", mode="before")
    @classmethod
    def _validate_local_timezone(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        name = str(value).strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"TIMEBOXD_LOCAL_TIMEZONE '{name}' is not a known time zone") from exc
        return name

    def tzinfo(self) -> ZoneInfo | None:
        """Return the configured zone, or None to use the system local zone."""

        return ZoneInfo(self.local_timezone) if self.local_timezone else None


@lru_cache(maxsize=1)
def get_settings() -> TimeboxdSettings:
    """Return cached settings instance."""

    settings = TimeboxdSettings()
    settings.database_path = settings.database_path.expanduser().resolve()
    return settings


__all__ = ["TimeboxdSettings", "get_settings"]

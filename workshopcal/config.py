"""Settings management using pydantic-settings, with environment variable support."""

import logging
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings. Every field can be set as ``WORKSHOPCAL_<NAME>``."""

    timezone: str = Field(
        default="UTC", description="IANA zone that occurrence times are expressed in"
    )
    default_nth_of_month: int = Field(
        default=1, description="nth_of_month given to monthly rules that omit it"
    )
    exclude_detached_dates: bool = Field(
        default=True,
        description="Stop a rule firing on a date once that occurrence is detached",
    )
    log_level: str = Field(default="WARNING", description="Level for the workshopcal logger")

    model_config = SettingsConfigDict(
        env_prefix="WORKSHOPCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value!r}") from None
        return value

    @field_validator("default_nth_of_month")
    @classmethod
    def _valid_nth(cls, value: int) -> int:
        if value not in (-1, 1, 2, 3, 4, 5):
            raise ValueError(f"default_nth_of_month must be -1 or 1..5, got {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _valid_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Apply the configured level to the package logger and return it."""
    settings = settings or get_settings()
    package_logger = logging.getLogger("workshopcal")
    package_logger.setLevel(settings.log_level)
    return package_logger

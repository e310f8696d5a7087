"""Runtime settings and logging configuration."""

from __future__ import annotations

import logging
import sys
from datetime import timedelta
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class AppSettings(BaseModel):
    """Host identity and logging settings."""

    environment: Literal["development", "staging", "production"] = "development"
    service: str = "keepfresh"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class RefresherSettings(BaseModel):
    """Refresh scheduling defaults."""

    retry_delay_seconds: float = Field(default=900.0, gt=0)
    initial_wait_timeout_seconds: float = Field(default=30.0, ge=0)

    @property
    def retry_delay(self) -> timedelta:
        """Retry delay as a timedelta."""
        return timedelta(seconds=self.retry_delay_seconds)

    @property
    def initial_wait_timeout(self) -> timedelta:
        """Initial wait timeout as a timedelta."""
        return timedelta(seconds=self.initial_wait_timeout_seconds)


class RedisSettings(BaseModel):
    """Redis storage settings."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL.")
    key: str = Field(default="keepfresh:value", min_length=1)

    @field_validator("url")
    @classmethod
    def validate_redis_url(cls, value: str) -> str:
        """Ensure the Redis URL uses a supported scheme."""
        if not value.startswith(("redis://", "rediss://")):
            raise ValueError("redis.url must start with 'redis://' or 'rediss://'.")
        return value


class Settings(BaseSettings):
    """Root settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    refresher: RefresherSettings = Field(default_factory=RefresherSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)


def _host_fields(app: AppSettings) -> structlog.types.Processor:
    """Build a processor stamping every event with the host identity."""

    def add_host_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("environment", app.environment)
        event_dict.setdefault("service", app.service)
        return event_dict

    return add_host_fields


def configure_structlog(settings: Settings) -> None:
    """Configure structlog to write one JSON object per event to stderr.

    Stdout stays reserved for command output.
    """
    log_level = getattr(logging, settings.app.log_level, logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            _host_fields(settings.app),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Return process-wide settings, read from the environment on first use."""
    return Settings()

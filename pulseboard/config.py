from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_INSTANCES_URL = (
    "https://raw.githubusercontent.com/EduardPrigoana/hifi-instances/refs/heads/main/instances.json"
)

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # API
    api_host: str = "0.0.0.0"
    port: int = 8080

    # Instance list
    instances_url: str = DEFAULT_INSTANCES_URL
    instance_refresh_minutes: int = 15

    # Checks
    check_interval_minutes: int = 60
    request_timeout_seconds: int = 30
    max_check_history: int = 168  # one week of hourly checks

    # Live stream
    sse_keepalive_seconds: int = 30
    subscriber_inbox_size: int = 10

    # Logging
    log_level: str = "INFO"

    @field_validator(
        "port",
        "instance_refresh_minutes",
        "check_interval_minutes",
        "request_timeout_seconds",
        "max_check_history",
        "sse_keepalive_seconds",
        mode="before",
    )
    @classmethod
    def _positive_or_default(cls, value: Any, info: ValidationInfo) -> Any:
        default = cls.model_fields[info.field_name].default
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid %s value %r, using default %s", info.field_name.upper(), value, default)
            return default
        if number < 1:
            logger.warning("%s must be at least 1, using default %s", info.field_name.upper(), default)
            return default
        return number

    @field_validator("subscriber_inbox_size", mode="before")
    @classmethod
    def _inbox_size(cls, value: Any) -> Any:
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = 0
        if number < 2:
            logger.warning("Invalid SUBSCRIBER_INBOX_SIZE %r, using default 10", value)
            return 10
        return number

    @field_validator("log_level", mode="before")
    @classmethod
    def _log_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if level not in _LOG_LEVELS:
            logger.warning("Unknown LOG_LEVEL %r, using INFO", value)
            return "INFO"
        return level

    @property
    def check_interval(self) -> float:
        return self.check_interval_minutes * 60.0

    @property
    def refresh_interval(self) -> float:
        return self.instance_refresh_minutes * 60.0

    @property
    def request_timeout(self) -> float:
        return float(self.request_timeout_seconds)

    def summary(self) -> dict[str, str]:
        return {
            "Port": str(self.port),
            "Check Interval": f"{self.check_interval_minutes}m",
            "Refresh Interval": f"{self.instance_refresh_minutes}m",
            "Instances URL": self.instances_url,
            "Request Timeout": f"{self.request_timeout_seconds}s",
            "Max Check History": str(self.max_check_history),
            "SSE Keepalive": f"{self.sse_keepalive_seconds}s",
            "Log Level": self.log_level,
        }


settings = Settings()

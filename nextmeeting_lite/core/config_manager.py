"""Configuration management for nextmeeting_lite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nextmeeting_lite.core.timezone_utils import DEFAULT_TIMEZONE, is_valid_timezone
from nextmeeting_lite.lite_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "NEXTMEETING_"

# Title prefixes that mark an event as cancelled when STATUS is not set
DEFAULT_CANCELLED_PREFIXES = ("Canceled:", "Cancelled:")

# Longest plausible single event; used to validate explicit ends and to
# bound the recurrence fast-skip lookback
MAX_EVENT_DURATION_HOURS = 24 * 7


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class LiteSettings(BaseModel):
    """Validated runtime settings.

    Built from environment variables by ConfigManager; tests construct it
    directly with keyword arguments.
    """

    model_config = ConfigDict(frozen=True)

    ics_url: Optional[str] = Field(default=None, description="Calendar feed URL")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="Zone used for the day window")
    default_duration_minutes: int = Field(
        default=60, gt=0, description="Duration for events without a usable end"
    )
    cache_ttl_seconds: int = Field(default=60, ge=0, description="Warm-process response cache TTL")
    fetch_timeout_seconds: float = Field(default=60.0, gt=0, description="ICS fetch timeout")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="'console' or 'json'")
    cancelled_prefixes: tuple[str, ...] = Field(default=DEFAULT_CANCELLED_PREFIXES)
    small_alarm_minutes: int = Field(default=15, ge=0)
    max_rrule_iterations: int = Field(default=50000, gt=0)
    max_event_duration_hours: int = Field(default=MAX_EVENT_DURATION_HOURS, gt=0)
    pinned_timezones: dict[str, str] = Field(
        default_factory=lambda: {"FLE Standard Time": "Europe/Nicosia"},
        description="Legacy zone names resolved before the generic tables",
    )
    server_bind: str = Field(default="0.0.0.0")  # nosec B104 - server bind address
    server_port: int = Field(default=8080, gt=0, lt=65536)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError(f"Unknown timezone {value!r}")
        return value

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("cancelled_prefixes", mode="before")
    @classmethod
    def _split_prefixes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(p.strip() for p in value.split(",") if p.strip())
        return value


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    # Environment variable suffix -> (settings field, converter)
    _ENV_FIELDS: dict[str, tuple[str, Any]] = {
        "ICS_URL": ("ics_url", str),
        "TIMEZONE": ("timezone", str),
        "DEFAULT_DURATION_MIN": ("default_duration_minutes", int),
        "CACHE_SECONDS": ("cache_ttl_seconds", int),
        "FETCH_TIMEOUT": ("fetch_timeout_seconds", float),
        "LOG_LEVEL": ("log_level", str),
        "LOG_FORMAT": ("log_format", str),
        "CANCELLED_PREFIXES": ("cancelled_prefixes", str),
        "SMALL_ALARM_MINUTES": ("small_alarm_minutes", int),
        "MAX_RRULE_ITERATIONS": ("max_rrule_iterations", int),
        "WEB_HOST": ("server_bind", str),
        "WEB_PORT": ("server_port", int),
    }

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from NEXTMEETING_* environment variables.

        Values that fail conversion are logged and ignored so the default applies.

        Returns:
            Configuration dictionary suitable for LiteSettings(**cfg)
        """
        cfg: dict[str, Any] = {}

        for suffix, (field_name, convert) in self._ENV_FIELDS.items():
            env_name = ENV_PREFIX + suffix
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                cfg[field_name] = convert(raw.strip())
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        return cfg

    def load_settings(self) -> LiteSettings:
        """Load .env file, read the environment and validate into LiteSettings.

        Raises:
            ConfigurationError: If a value fails validation
        """
        self.load_env_file()
        cfg = self.build_config_from_env()
        try:
            return LiteSettings(**cfg)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


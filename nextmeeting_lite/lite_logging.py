"""
Central logging configuration for nextmeeting_lite.

Console output uses colorlog (see ``nextmeeting_lite._init_logging``); the
json format emits one structured object per record for log aggregators.
Verbose DEBUG output from third-party libraries is suppressed.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, Optional

SCHEMA_VERSION = "1.0"

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys() | {"message", "asctime"}
)

# Noisy third-party loggers and the level they are held at
THIRD_PARTY_LOG_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


class JsonLogFormatter(logging.Formatter):
    """Format records as single-line JSON objects.

    Fields: timestamp, level, logger, message, schema_version, and any
    ``extra`` values passed to the logging call under ``details``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "schema_version": SCHEMA_VERSION,
        }

        details = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
        }
        if details:
            entry["details"] = details

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, separators=(",", ":"), default=str)


def configure_lite_logging(level_name: Optional[str] = None, log_format: str = "console") -> None:
    """
    Apply levels for nextmeeting_lite and third-party loggers.

    Args:
        level_name: Root level name (DEBUG, INFO, WARNING, ERROR); INFO if unknown
        log_format: 'console' keeps existing handlers; 'json' switches their
            formatter to JsonLogFormatter
    """
    level = logging.INFO
    if isinstance(level_name, str) and level_name.upper() in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = getattr(logging, level_name.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if log_format == "json":
        for handler in root_logger.handlers:
            handler.setFormatter(JsonLogFormatter())

    for logger_name, logger_level in THIRD_PARTY_LOG_LEVELS.items():
        logging.getLogger(logger_name).setLevel(max(logger_level, level))

    logging.getLogger("nextmeeting_lite").setLevel(level)

    root_logger.debug(
        "Logging configured: level=%s format=%s", logging.getLevelName(level), log_format
    )


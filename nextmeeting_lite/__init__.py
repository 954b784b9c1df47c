"""nextmeeting_lite - what's on the calendar now and next.

Fetches an ICS feed, expands today's occurrences in a chosen zone and reports
the current, next, next-overlapping and next-non-overlapping meetings.
Imports are kept light so the package can be inspected without pulling in
the web stack.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str], log_format: str = "console") -> None:
    """Initialize root logging to stream to stderr.

    Console format colorizes the level with colorlog; json format emits one
    object per line. Only installs a handler when none is present, to avoid
    duplicate output.
    """
    import logging
    import sys

    from colorlog import ColoredFormatter

    from nextmeeting_lite.lite_logging import JsonLogFormatter

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        if log_format == "json":
            handler.setFormatter(JsonLogFormatter())
        else:
            # HH:MM:SS  LEVEL   logger.name: message
            fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
            log_colors = {
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            }
            handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Load settings, configure logging and run the HTTP server until interrupted.

    Args:
        args: Optional argparse namespace; ``port`` and ``tz`` override settings
    """
    import logging
    import os

    _init_logging(
        os.environ.get("NEXTMEETING_LOG_LEVEL"),
        os.environ.get("NEXTMEETING_LOG_FORMAT", "console").strip().lower(),
    )

    from nextmeeting_lite.api.server import start_server
    from nextmeeting_lite.core.config_manager import ConfigManager
    from nextmeeting_lite.lite_logging import configure_lite_logging

    logger = logging.getLogger(__name__)

    settings = ConfigManager().load_settings()
    configure_lite_logging(settings.log_level, settings.log_format)

    overrides: dict = {}
    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            overrides["server_port"] = port
            logger.debug("Applied command line port override: %d", port)
        tz = getattr(args, "tz", None)
        if tz:
            overrides["timezone"] = tz
    if overrides:
        from pydantic import ValidationError

        from nextmeeting_lite.lite_exceptions import ConfigurationError

        try:
            settings = settings.model_validate({**settings.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid command line override: {e}") from e

    start_server(settings)

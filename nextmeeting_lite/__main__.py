"""Command-line entry for nextmeeting_lite.

``serve`` (the default) runs the HTTP server; ``once`` computes a single
response from the configured feed or a local file and prints it as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn, Optional

from . import _init_logging, run_server

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for nextmeeting_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="nextmeeting_lite",
        description="nextmeeting_lite - current and next meeting from an ICS feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m nextmeeting_lite                              # Serve on port 8080
  python -m nextmeeting_lite serve --port 3000            # Serve on port 3000
  python -m nextmeeting_lite once --ics-file cal.ics --now 2026-02-09T10:20:00Z
        """,
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=("serve", "once"),
        default="serve",
        help="serve (default) or compute once and print JSON",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or NEXTMEETING_WEB_PORT)",
    )
    parser.add_argument(
        "--tz",
        metavar="ZONE",
        help="IANA zone for the day window (default: NEXTMEETING_TIMEZONE or Europe/Nicosia)",
    )
    parser.add_argument(
        "--now",
        metavar="ISO8601",
        help="Evaluate at this instant instead of the current time (once only)",
    )
    parser.add_argument(
        "--ics-file",
        type=Path,
        metavar="PATH",
        help="Read calendar text from a local file instead of NEXTMEETING_ICS_URL (once only)",
    )
    return parser


def run_once(args: argparse.Namespace) -> int:
    """Compute one response and print it.

    Returns:
        Process exit code
    """
    from nextmeeting_lite.core.config_manager import ConfigManager
    from nextmeeting_lite.core.http_client import close_all_clients, fetch_ics_text
    from nextmeeting_lite.core.timezone_utils import now_utc, parse_now_override
    from nextmeeting_lite.domain.whats_next import build_response, compute_whats_next
    from nextmeeting_lite.lite_exceptions import ConfigurationError, NextMeetingError

    _init_logging(os.environ.get("NEXTMEETING_LOG_LEVEL", "WARNING"))

    try:
        settings = ConfigManager().load_settings()
        now = parse_now_override(args.now) if args.now else now_utc()

        if args.ics_file is not None:
            ics_text = args.ics_file.read_text(encoding="utf-8")
        elif settings.ics_url:

            async def _fetch() -> str:
                try:
                    return await fetch_ics_text(settings.ics_url, settings.fetch_timeout_seconds)
                finally:
                    await close_all_clients()

            ics_text = asyncio.run(_fetch())
        else:
            raise ConfigurationError("ICS URL is not configured (set NEXTMEETING_ICS_URL or use --ics-file)")

        result = compute_whats_next(ics_text, now, settings, args.tz)
    except (NextMeetingError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(build_response(result, settings).to_body(), indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the nextmeeting_lite CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.command == "once":
        sys.exit(run_once(args))

    from nextmeeting_lite.lite_exceptions import NextMeetingError

    try:
        run_server(args)
    except NextMeetingError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()

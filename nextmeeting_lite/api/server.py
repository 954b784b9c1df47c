"""aiohttp server for nextmeeting_lite.

The computed response body is cached per process as an immutable
CachedResponse; a refresh replaces the held value and never mutates it.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
import signal
from collections.abc import Awaitable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Optional

from nextmeeting_lite.core.http_client import close_all_clients, fetch_ics_text
from nextmeeting_lite.core.timezone_utils import now_utc
from nextmeeting_lite.lite_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

FetchText = Callable[[], Awaitable[str]]
TimeProvider = Callable[[], datetime.datetime]


@dataclass(frozen=True)
class CachedResponse:
    """A computed response body and the instant and zone it was computed for."""

    fetched_at: datetime.datetime
    body: MappingProxyType
    tz: str

    def age_seconds(self, now: datetime.datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def is_fresh(self, now: datetime.datetime, ttl_seconds: float) -> bool:
        return 0 <= self.age_seconds(now) < ttl_seconds


class ResponseCache:
    """Holds the most recent CachedResponse for a warm process."""

    def __init__(self) -> None:
        self._current: Optional[CachedResponse] = None

    @property
    def current(self) -> Optional[CachedResponse]:
        return self._current

    def lookup(
        self, now: datetime.datetime, tz: str, ttl_seconds: float
    ) -> Optional[CachedResponse]:
        """Return the held entry if it was computed for tz and is still fresh."""
        entry = self._current
        if entry is None or entry.tz != tz or not entry.is_fresh(now, ttl_seconds):
            return None
        return entry

    def store(self, now: datetime.datetime, body: dict[str, Any], tz: str) -> CachedResponse:
        """Replace the held entry with a new one."""
        entry = CachedResponse(fetched_at=now, body=MappingProxyType(dict(body)), tz=tz)
        self._current = entry
        return entry


def make_ics_fetcher(settings: Any) -> FetchText:
    """Build the default fetcher for settings.ics_url.

    The returned coroutine raises ConfigurationError when no URL is set.
    """

    async def _fetch() -> str:
        if not settings.ics_url:
            raise ConfigurationError("ICS URL is not configured")
        return await fetch_ics_text(settings.ics_url, timeout=settings.fetch_timeout_seconds)

    return _fetch


def make_app(
    settings: Any,
    fetch_text: Optional[FetchText] = None,
    time_provider: TimeProvider = now_utc,
    response_cache: Optional[ResponseCache] = None,
) -> Any:
    """Create aiohttp web application with the API routes.

    Args:
        settings: LiteSettings
        fetch_text: Coroutine function returning calendar text; defaults to
            fetching settings.ics_url
        time_provider: Callable returning the aware current instant
        response_cache: Cache instance; a fresh one is created when None

    Returns:
        aiohttp.web.Application
    """
    from aiohttp import web

    from nextmeeting_lite.api.routes import register_api_routes

    app = web.Application()

    register_api_routes(
        app=app,
        settings=settings,
        fetch_text=fetch_text or make_ics_fetcher(settings),
        time_provider=time_provider,
        response_cache=response_cache or ResponseCache(),
    )

    async def _cleanup(_app: Any) -> None:
        await close_all_clients()
        logger.debug("Shared HTTP clients cleaned up")

    app.on_cleanup.append(_cleanup)
    return app


async def _serve(settings: Any, external_stop_event: asyncio.Event | None = None) -> None:
    """Run the server until signalled to stop."""
    from aiohttp import web

    app = make_app(settings)
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host=settings.server_bind, port=settings.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", settings.server_bind, settings.server_port)
        await runner.cleanup()
        raise

    logger.info(
        "Serving on http://%s:%d (timezone %s)",
        settings.server_bind,
        settings.server_port,
        settings.timezone,
    )

    stop_event = external_stop_event or asyncio.Event()
    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")
    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(settings: Any) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks until SIGINT/SIGTERM.

    Args:
        settings: LiteSettings with server_bind and server_port
    """
    if not settings.ics_url:
        logger.warning("NEXTMEETING_ICS_URL is not set; /api/whats-next will return 500")

    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

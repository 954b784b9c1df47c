"""API routes for nextmeeting_lite."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from nextmeeting_lite.core.timezone_utils import is_valid_timezone
from nextmeeting_lite.domain.whats_next import build_response, compute_whats_next
from nextmeeting_lite.lite_exceptions import (
    ConfigurationError,
    ICSFetchError,
    InvalidTimezoneError,
    NextMeetingError,
)

logger = logging.getLogger(__name__)


def _json(web: Any, status: int, body: dict[str, Any], cache_state: str | None = None) -> Any:
    """JSON response with the no-store envelope headers."""
    headers = {"cache-control": "no-store"}
    if cache_state is not None:
        headers["x-cache"] = cache_state
    return web.json_response(body, status=status, headers=headers)


def register_api_routes(
    app: Any,
    settings: Any,
    fetch_text: Any,
    time_provider: Any,
    response_cache: Any,
) -> None:
    """Register API routes.

    Args:
        app: aiohttp web application
        settings: LiteSettings
        fetch_text: Coroutine function returning calendar text
        time_provider: Callable returning the aware current instant
        response_cache: ResponseCache holding the last computed body
    """
    from aiohttp import web

    async def health_check(_request: Any) -> Any:
        """Liveness plus cache age."""
        now = time_provider()
        cached = response_cache.current
        return _json(
            web,
            200,
            {
                "status": "ok",
                "server_time_iso": now.isoformat(),
                "timezone": settings.timezone,
                "ics_configured": bool(settings.ics_url),
                "pid": os.getpid(),
                "cache": {
                    "present": cached is not None,
                    "age_s": None if cached is None else round(cached.age_seconds(now), 3),
                    "tz": None if cached is None else cached.tz,
                },
            },
        )

    async def whats_next(request: Any) -> Any:
        """Current, next, next-overlapping and next-non-overlapping meetings for today."""
        tz = request.query.get("tz") or settings.timezone
        if not is_valid_timezone(tz):
            logger.warning("Rejected invalid timezone %r", tz)
            return _json(web, 400, {"error": str(InvalidTimezoneError(tz))})

        now = time_provider()

        cached = response_cache.lookup(now, tz, settings.cache_ttl_seconds)
        if cached is not None:
            logger.debug("Cache hit (age %.1fs)", cached.age_seconds(now))
            return _json(web, 200, dict(cached.body), "HIT")

        try:
            ics_text = await fetch_text()
            # CPU-bound; runs in the default executor
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, compute_whats_next, ics_text, now, settings, tz)
            body = build_response(result, settings).to_body()
        except InvalidTimezoneError as e:
            return _json(web, 400, {"error": str(e)})
        except ICSFetchError as e:
            logger.error("ICS fetch failed: %s", e)
            return _json(web, 502, {"error": str(e)})
        except ConfigurationError as e:
            logger.error("%s", e)
            return _json(web, 500, {"error": str(e)})
        except NextMeetingError as e:
            logger.exception("Failed to compute whats-next")
            return _json(web, 500, {"error": str(e)})

        response_cache.store(now, body, tz)
        logger.info(
            "Computed whats-next for %s: %d occurrence(s), next in %s min",
            tz,
            len(result.occurrences),
            body["minutesUntilNext"],
        )
        return _json(web, 200, body, "MISS")

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/whats-next", whats_next)

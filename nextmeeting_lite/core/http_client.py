"""Shared HTTP client manager and ICS fetch helper.

Keeps one httpx.AsyncClient per client id for the life of the process so warm
invocations reuse connections instead of creating a client per fetch.
"""

import asyncio
import logging
from typing import Optional

import httpx

from nextmeeting_lite.lite_exceptions import ICSFetchError, ICSTimeoutError

logger = logging.getLogger(__name__)

# Global state for shared HTTP clients
_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

_DEFAULT_LIMITS = httpx.Limits(
    max_connections=4,
    max_keepalive_connections=2,
)

# Calendar servers (Office365 in particular) reject obviously automated clients
DEFAULT_BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


async def get_shared_client(
    client_id: str = "default",
    timeout: Optional[float] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        timeout: Total timeout in seconds applied when the client is created

    Returns:
        Shared httpx.AsyncClient that follows redirects
    """
    async with _client_lock:
        if client_id not in _shared_clients or _shared_clients[client_id].is_closed:
            effective_timeout = httpx.Timeout(timeout if timeout is not None else 60.0)
            logger.debug(
                "Creating shared HTTP client '%s' (max_connections=%d)",
                client_id,
                _DEFAULT_LIMITS.max_connections,
            )
            _shared_clients[client_id] = httpx.AsyncClient(
                limits=_DEFAULT_LIMITS,
                timeout=effective_timeout,
                follow_redirects=True,
                headers=DEFAULT_BROWSER_HEADERS,
            )
            logger.info("Created shared HTTP client '%s'", client_id)

        return _shared_clients[client_id]


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called during application shutdown and between tests.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except (httpx.HTTPError, RuntimeError) as e:
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()


async def fetch_ics_text(
    url: str,
    timeout: float = 60.0,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Fetch calendar text from url.

    Args:
        url: Calendar feed URL (http/https)
        timeout: Request timeout in seconds
        client: Optional client to use instead of the shared one

    Returns:
        Response body decoded as text

    Raises:
        ICSTimeoutError: If the request times out
        ICSFetchError: On non-2xx status or transport failure
    """
    http = client or await get_shared_client(timeout=timeout)

    try:
        response = await http.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        logger.warning("Timeout fetching ICS after %ss", timeout)
        raise ICSTimeoutError(f"Request timeout after {timeout}s") from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.warning("HTTP %d fetching ICS", status)
        raise ICSFetchError(f"ICS fetch failed with HTTP {status}", status_code=status) from e
    except httpx.RequestError as e:
        logger.warning("Network error fetching ICS: %s", e)
        raise ICSFetchError(f"Network error: {e}") from e

    logger.debug("Fetched ICS: %d bytes", len(response.content))
    return response.text

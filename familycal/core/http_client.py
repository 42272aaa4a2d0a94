"""Pooled httpx clients for talking to the hosted event database.

Stores ask for a client by name; the first call creates it and later calls
reuse it until ``close_all_clients()`` runs at shutdown.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_clients: dict[str, httpx.AsyncClient] = {}
_clients_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

# Store queries are small; reads get the longest budget
DEFAULT_TIMEOUT = httpx.Timeout(connect=5.0, read=15.0, write=5.0, pool=15.0)

DEFAULT_JSON_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "User-Agent": "familycal/0.1",
}


def get_request_headers() -> dict[str, str]:
    """Default headers plus the current request's correlation ID, if any."""
    from familycal.api.middleware.correlation_id import NO_REQUEST_ID, get_request_id

    headers = dict(DEFAULT_JSON_HEADERS)
    request_id = get_request_id()
    if request_id != NO_REQUEST_ID:
        headers["X-Request-ID"] = request_id
    return headers


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Return the pooled client named ``client_id``, creating it if needed.

    A client that was closed behind our back is replaced. ``limits`` and
    ``timeout`` only apply when a new client is built.
    """
    async with _clients_lock:
        client = _clients.get(client_id)
        if client is None or client.is_closed:
            pool_limits = limits or DEFAULT_LIMITS
            client = httpx.AsyncClient(
                limits=pool_limits,
                timeout=timeout or DEFAULT_TIMEOUT,
                headers=DEFAULT_JSON_HEADERS,
            )
            _clients[client_id] = client
            logger.debug(
                "Opened HTTP client %r (max_connections=%s)", client_id, pool_limits.max_connections
            )
        return client


async def close_all_clients() -> None:
    """Close every pooled client. Safe to call more than once."""
    async with _clients_lock:
        while _clients:
            client_id, client = _clients.popitem()
            if client.is_closed:
                continue
            try:
                await client.aclose()
            except httpx.HTTPError as e:
                logger.warning("HTTP client %r did not close cleanly: %s", client_id, e)
            else:
                logger.debug("Closed HTTP client %r", client_id)

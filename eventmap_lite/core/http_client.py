"""Pooled outbound HTTP clients keyed by service (geocoding, remote sources).

Each service gets one long-lived httpx.AsyncClient. A service whose client
keeps failing gets a fresh client on its next lookup.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "default"

POOL_LIMITS = httpx.Limits(max_connections=20, max_keepalive_connections=10)

# Geocoding answers quickly; the read budget covers slow remote event feeds
POOL_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)

REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": "eventmap-lite/0.1 (+https://github.com/eventmap/eventmap)",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

# A client is replaced after this many consecutive failures inside the window
HEALTH_ERROR_THRESHOLD = 3
HEALTH_TIMEOUT_SECONDS = 300


@dataclass
class ClientHealth:
    """Consecutive-failure bookkeeping for one service client."""

    error_count: int = 0
    last_error_time: float = 0.0
    created_time: float = field(default_factory=time.time)

    def is_failing(self, now: float) -> bool:
        return (
            self.error_count >= HEALTH_ERROR_THRESHOLD
            and now - self.last_error_time < HEALTH_TIMEOUT_SECONDS
        )


_clients: dict[str, httpx.AsyncClient] = {}
_health: dict[str, ClientHealth] = {}
_pool_lock = asyncio.Lock()


def _build_client(limits: httpx.Limits, timeout: httpx.Timeout) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        limits=limits,
        timeout=timeout,
        headers=REQUEST_HEADERS,
        follow_redirects=True,
    )


async def _discard_client(service: str) -> None:
    """Close and forget a service's client; caller holds the pool lock."""
    client = _clients.pop(service, None)
    _health.pop(service, None)
    if client is None or client.is_closed:
        return
    try:
        await client.aclose()
    except Exception as e:
        logger.warning("Error closing HTTP client for %s: %s", service, e)


async def get_shared_client(
    client_id: str = DEFAULT_SERVICE,
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Return the pooled client for a service, creating it on first use.

    Args:
        client_id: Service name, e.g. "geocoding"
        limits: Connection limits for a newly created client
        timeout: Timeouts for a newly created client

    Raises:
        RuntimeError: If the client cannot be constructed
    """
    async with _pool_lock:
        health = _health.get(client_id)
        if health is not None and client_id in _clients and health.is_failing(time.time()):
            logger.warning(
                "Replacing HTTP client for %s after %d consecutive errors",
                client_id,
                health.error_count,
            )
            await _discard_client(client_id)

        client = _clients.get(client_id)
        if client is not None and not client.is_closed:
            return client

        try:
            client = _build_client(limits or POOL_LIMITS, timeout or POOL_TIMEOUT)
        except Exception as e:
            logger.exception("Could not create HTTP client for %s", client_id)
            raise RuntimeError(f"Could not create HTTP client for {client_id}: {e}") from e

        _clients[client_id] = client
        _health[client_id] = ClientHealth()
        logger.debug("Created HTTP client for %s", client_id)
        return client


async def close_all_clients() -> None:
    """Close every pooled client; used on CLI exit and in test teardown."""
    async with _pool_lock:
        for service in list(_clients):
            await _discard_client(service)
        _health.clear()


async def record_client_error(client_id: str = DEFAULT_SERVICE) -> None:
    async with _pool_lock:
        health = _health.setdefault(client_id, ClientHealth())
        health.error_count += 1
        health.last_error_time = time.time()
        logger.debug("HTTP client %s error count now %d", client_id, health.error_count)


async def record_client_success(client_id: str = DEFAULT_SERVICE) -> None:
    async with _pool_lock:
        health = _health.get(client_id)
        if health is not None:
            health.error_count = 0


def get_client_health(client_id: str = DEFAULT_SERVICE) -> Optional[dict[str, float]]:
    """Snapshot of a service's health counters, or None if never seen."""
    health = _health.get(client_id)
    return asdict(health) if health is not None else None

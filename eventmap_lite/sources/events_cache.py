"""Per-source response cache keyed by source id and hour-rounded time window."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from ..core.timezone_utils import round_down_to_hour
from ..models import SourceResponse

logger = logging.getLogger(__name__)

NO_EXPIRY = -1


def make_cache_key(source_id: str, time_min: Optional[str], time_max: Optional[str]) -> str:
    """Build ``"<source_id>-<time_min hour>-<time_max hour>"``; blank bounds stay blank."""
    return f"{source_id}-{round_down_to_hour(time_min)}-{round_down_to_hour(time_max)}"


@dataclass
class _Entry:
    response: SourceResponse
    stored_at: float
    expires_at: Optional[float]


class EventsCache:
    """In-memory events cache with TTL expiry.

    ``ttl`` is in seconds; ``-1`` caches indefinitely and ``0`` disables
    caching for that call. The clock is injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 200) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    async def get(
        self,
        source_id: str,
        ttl: int,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> Optional[SourceResponse]:
        """Return a cached response, or None if missing or expired.

        A non-negative ``ttl`` also caps the accepted age of the entry.
        """
        key = make_cache_key(source_id, time_min, time_max)
        async with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is not None:
                expired = entry.expires_at is not None and now >= entry.expires_at
                too_old = ttl != NO_EXPIRY and now - entry.stored_at >= ttl
                if expired or too_old:
                    del self._entries[key]
                    entry = None

            if entry is None:
                self._misses += 1
                logger.debug("Events cache miss for %s", key)
                return None

            self._hits += 1
            logger.debug("Events cache hit for %s", key)
            return entry.response

    async def set(
        self,
        response: SourceResponse,
        source_id: str,
        ttl: int,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> None:
        if ttl == 0:
            return
        key = make_cache_key(source_id, time_min, time_max)
        async with self._lock:
            now = self._clock()
            expires_at = None if ttl == NO_EXPIRY else now + ttl
            self._entries[key] = _Entry(response=response, stored_at=now, expires_at=expires_at)

            # FIFO eviction by insertion order
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("Evicted oldest events cache entry %s", oldest)

        ttl_label = "no expiry" if ttl == NO_EXPIRY else f"{ttl}s"
        logger.info("Cached %d events (%s) for %s", len(response.events), ttl_label, key)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
        }

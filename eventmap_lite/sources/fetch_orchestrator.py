"""Fetch orchestration: per-source fetch + geocode, then multi-source aggregation."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Sequence
from typing import Any, Optional

from ..config_loader import DEFAULT_EVENTS_CACHE_TTL
from ..core.async_utils import AsyncOrchestrator, AsyncTimeoutError, get_global_orchestrator
from ..core.config_manager import get_config_value
from ..domain.aggregator import SourceAggregator
from ..exceptions import AggregationError, SourceFetchError
from ..geo.batch_resolver import BatchResolver
from ..geo.geocoding import LocationResolver
from ..models import AggregateResult, Event, SourceResponse
from .events_cache import EventsCache
from .registry import SourceRegistry, get_default_registry

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT = 504
INTERNAL_ERROR = 500

# Handlers that cannot raise SourceFetchError may raise "HTTP 404: message"
_HTTP_STATUS_RE = re.compile(r"^HTTP (\d{3}): (.+)$", re.DOTALL)


def status_code_for_error(error: BaseException) -> int:
    """Map a fetch failure to an HTTP-status-like code."""
    if isinstance(error, SourceFetchError):
        return error.status_code
    if isinstance(error, (AsyncTimeoutError, asyncio.TimeoutError)):
        return GATEWAY_TIMEOUT
    match = _HTTP_STATUS_RE.match(str(error))
    if match:
        return int(match.group(1))
    return INTERNAL_ERROR


class FetchOrchestrator:
    """Fetch sources through the events cache, resolve locations and aggregate."""

    def __init__(
        self,
        batch_resolver: BatchResolver,
        registry: Optional[SourceRegistry] = None,
        events_cache: Optional[EventsCache] = None,
        aggregator: Optional[SourceAggregator] = None,
        fetch_concurrency: int = 3,
        fetch_timeout_seconds: float = 120.0,
        events_cache_ttl_seconds: int = DEFAULT_EVENTS_CACHE_TTL,
        orchestrator: Optional[AsyncOrchestrator] = None,
    ):
        """Initialize fetch orchestrator.

        Args:
            batch_resolver: Resolves each fetched batch's unique locations
            registry: Source handler registry (defaults to the process-wide one)
            events_cache: Optional per-source response cache
            aggregator: Merges per-source responses
            fetch_concurrency: Maximum number of concurrent source fetches
            fetch_timeout_seconds: Overall timeout for fetch_all_sources
            events_cache_ttl_seconds: TTL for cached responses, -1 for no expiry
            orchestrator: AsyncOrchestrator (defaults to the global instance)
        """
        self.batch_resolver = batch_resolver
        self.registry = registry or get_default_registry()
        self.events_cache = events_cache
        self.aggregator = aggregator or SourceAggregator()
        self.fetch_concurrency = max(1, int(fetch_concurrency))
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.events_cache_ttl_seconds = events_cache_ttl_seconds
        self._orchestrator = orchestrator

    @classmethod
    def from_config(
        cls,
        config: Any,
        resolver: LocationResolver,
        registry: Optional[SourceRegistry] = None,
        events_cache: Optional[EventsCache] = None,
    ) -> FetchOrchestrator:
        """Build from a Config dataclass or an equivalent mapping."""
        batch_resolver = BatchResolver(
            resolver,
            batch_size=int(get_config_value(config, "geocode_batch_size", 10)),
            batch_delay_seconds=float(get_config_value(config, "geocode_batch_delay_seconds", 0.05)),
        )
        return cls(
            batch_resolver,
            registry=registry,
            events_cache=events_cache if events_cache is not None else EventsCache(),
            fetch_concurrency=int(get_config_value(config, "fetch_concurrency", 3)),
            fetch_timeout_seconds=float(get_config_value(config, "fetch_timeout_seconds", 120.0)),
            events_cache_ttl_seconds=int(
                get_config_value(config, "events_cache_ttl_seconds", DEFAULT_EVENTS_CACHE_TTL)
            ),
        )

    @property
    def orchestrator(self) -> AsyncOrchestrator:
        return self._orchestrator or get_global_orchestrator()

    async def fetch_and_resolve(
        self,
        source_id: str,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> SourceResponse:
        """Fetch one source (or its cached response) with locations resolved.

        Raises:
            SourceFetchError: propagated from the registry or handler
        """
        ttl = self.events_cache_ttl_seconds
        if self.events_cache is not None:
            cached = await self.events_cache.get(source_id, ttl, time_min, time_max)
            if cached is not None:
                logger.info("Cache hit for %s (%d events)", source_id, len(cached.events))
                return cached

        started = time.perf_counter()
        response = await self.registry.fetch(source_id, time_min, time_max)
        logger.info(
            "Fetched %d events in %dms from %s",
            len(response.events),
            int((time.perf_counter() - started) * 1000),
            source_id,
        )

        events = await self._attach_locations(response.events)
        unknown = sum(1 for e in events if not e.has_resolved_location)
        logger.info("Events with unknown locations: %d of %d", unknown, len(events))

        result = SourceResponse(
            events=events,
            source=response.source.model_copy(
                update={"total_count": len(events), "unknown_locations_count": unknown}
            ),
        )

        if self.events_cache is not None:
            try:
                await self.events_cache.set(result, source_id, ttl, time_min, time_max)
            except Exception as e:
                logger.warning("Failed to cache events for %s: %s", source_id, e)

        logger.debug(
            "fetch_and_resolve %s finished in %dms",
            source_id,
            int((time.perf_counter() - started) * 1000),
        )
        return result

    async def _attach_locations(self, events: Sequence[Event]) -> list[Event]:
        """Resolve non-blank locations of events lacking coordinates and attach them."""
        pending = [e for e in events if e.resolved_location is None and e.location.strip()]
        if not pending:
            return list(events)

        resolved = await self.batch_resolver.resolve_map(e.location for e in pending)
        return [
            e.model_copy(update={"resolved_location": resolved[e.location]})
            if e.resolved_location is None and e.location in resolved
            else e
            for e in events
        ]

    async def _fetch_one(
        self,
        semaphore: asyncio.Semaphore,
        source_id: str,
        time_min: Optional[str],
        time_max: Optional[str],
    ) -> SourceResponse:
        async with semaphore:
            try:
                return await self.fetch_and_resolve(source_id, time_min, time_max)
            except SourceFetchError as e:
                e.source_id = source_id
                raise
            except Exception as e:
                raise SourceFetchError(
                    str(e) or type(e).__name__,
                    status_code=status_code_for_error(e),
                    source_id=source_id,
                ) from e

    async def fetch_all_sources(
        self,
        source_ids: Sequence[str],
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> AggregateResult:
        """Fetch every source in parallel and merge the results.

        The first failing source fails the whole call.

        Raises:
            AggregationError: carrying the failing source id and status code
        """
        if not source_ids:
            logger.warning("No sources requested, skipping fetch")
            return AggregateResult()

        semaphore = asyncio.Semaphore(self.fetch_concurrency)
        try:
            responses = await self.orchestrator.gather_with_timeout(
                *(self._fetch_one(semaphore, sid, time_min, time_max) for sid in source_ids),
                timeout=self.fetch_timeout_seconds,
            )
        except AsyncTimeoutError as e:
            logger.error("Fetching %d sources timed out", len(source_ids))
            raise AggregationError(
                f"Timed out after {self.fetch_timeout_seconds}s fetching sources",
                status_code=GATEWAY_TIMEOUT,
            ) from e
        except SourceFetchError as e:
            logger.error("Source %s failed with %d: %s", e.source_id, e.status_code, e)
            raise AggregationError(str(e), status_code=e.status_code, source_id=e.source_id) from e

        result = self.aggregator.aggregate(responses)
        logger.info(
            "Aggregated %d events from %d sources (%d duplicates dropped)",
            len(result.events),
            len(result.sources),
            len(result.duplicate_ids),
        )
        return result

"""Batch resolution of many location strings through a LocationResolver."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import Optional

from ..core.async_utils import AsyncOrchestrator, get_global_orchestrator
from ..models import ResolvedLocation
from .geocoding import LocationResolver, ResolutionSource

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY_SECONDS = 0.05


def unique_locations(locations: Iterable[str]) -> list[str]:
    """De-duplicate location strings, keeping first-occurrence order."""
    return list(dict.fromkeys(locations))


class BatchResolver:
    """Resolve a list of locations in fixed-size concurrent batches.

    Each unique input is resolved once. Batches run one after another with a
    fixed pause between them to stay under geocoding rate limits.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        orchestrator: Optional[AsyncOrchestrator] = None,
    ) -> None:
        self.resolver = resolver
        self.batch_size = max(1, int(batch_size))
        self.batch_delay_seconds = max(0.0, float(batch_delay_seconds))
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> AsyncOrchestrator:
        return self._orchestrator or get_global_orchestrator()

    async def resolve_all(self, locations: Iterable[str]) -> list[ResolvedLocation]:
        """Resolve each unique location; output is aligned with the de-duplicated input."""
        unique = unique_locations(locations)
        if not unique:
            return []

        outcomes = await self.orchestrator.run_in_batches(
            unique,
            self.resolver.resolve_with_source,
            batch_size=self.batch_size,
            delay_seconds=self.batch_delay_seconds,
        )

        results: list[ResolvedLocation] = []
        stats: Counter[str] = Counter()
        for location, outcome in zip(unique, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Resolving %r failed: %s", location, outcome)
                results.append(ResolvedLocation.unresolved(location))
                stats[ResolutionSource.OTHER.value] += 1
                continue
            resolved, source = outcome
            results.append(resolved)
            stats[source.value] += 1

        resolved_count = sum(1 for r in results if r.is_resolved)
        logger.info(
            "Resolved %d/%d unique locations (cache=%d custom=%d api=%d other=%d)",
            resolved_count,
            len(results),
            stats[ResolutionSource.CACHE.value],
            stats[ResolutionSource.CUSTOM.value],
            stats[ResolutionSource.API.value],
            stats[ResolutionSource.OTHER.value],
        )
        return results

    async def resolve_map(self, locations: Iterable[str]) -> dict[str, ResolvedLocation]:
        """Resolve locations and key the results by the original input string."""
        unique = unique_locations(locations)
        resolved = await self.resolve_all(unique)
        return dict(zip(unique, resolved))

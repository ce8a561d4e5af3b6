"""Async concurrency helpers shared by source fetching and geocoding.

Source fetches fan out under one overall timeout and the first failure
fails the group. Geocoding runs fixed-size concurrent batches with a pause
between batches, and a failing item only affects its own slot.

Usage Example:
    ```python
    from eventmap_lite.core.async_utils import get_global_orchestrator

    orchestrator = get_global_orchestrator()

    responses = await orchestrator.gather_with_timeout(
        fetch("gc:abc"), fetch("file:events.json"), timeout=120.0
    )

    outcomes = await orchestrator.run_in_batches(
        locations, resolver.resolve, batch_size=10, delay_seconds=0.05
    )
    ```
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AsyncOrchestratorError(Exception):
    """Base exception for AsyncOrchestrator errors."""


class AsyncTimeoutError(AsyncOrchestratorError):
    """An awaited group did not finish within its time budget."""


@dataclass
class OperationStats:
    operations: int = 0
    errors: int = 0
    timeouts: int = 0
    last_error_time: Optional[float] = None

    def record(self, ok: bool, timed_out: bool = False) -> None:
        self.operations += 1
        if not ok:
            self.errors += 1
            self.last_error_time = time.time()
        if timed_out:
            self.timeouts += 1

    def rate(self, count: int) -> float:
        return count / self.operations if self.operations else 0.0


class AsyncOrchestrator:
    """Timeout, fail-fast gathering and batching for coroutines."""

    def __init__(self, default_timeout: float = 30.0, enable_health_tracking: bool = True):
        """Create an orchestrator.

        Args:
            default_timeout: Seconds allowed when a call passes no timeout
            enable_health_tracking: Count operations, errors and timeouts
        """
        self.default_timeout = default_timeout
        self.enable_health_tracking = enable_health_tracking
        self._stats = OperationStats()
        logger.debug("AsyncOrchestrator ready (default_timeout=%.1fs)", default_timeout)

    def _record(self, ok: bool, timed_out: bool = False) -> None:
        if self.enable_health_tracking:
            self._stats.record(ok, timed_out)

    async def run_with_timeout(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Await ``coro`` within ``timeout`` seconds (default_timeout when None).

        Raises:
            AsyncTimeoutError: when the deadline passes first
        """
        limit = self.default_timeout if timeout is None else timeout
        try:
            result = await asyncio.wait_for(coro, timeout=limit)
        except asyncio.TimeoutError as e:
            self._record(ok=False, timed_out=True)
            logger.warning("Gave up after %.1fs", limit)
            raise AsyncTimeoutError(f"Operation exceeded timeout of {limit}s") from e
        except Exception:
            self._record(ok=False)
            raise
        self._record(ok=True)
        return result

    async def gather_with_timeout(
        self,
        *coroutines: Awaitable[Any],
        timeout: Optional[float] = None,
    ) -> list[Any]:
        """Run coroutines concurrently under one deadline, results in input order.

        The first exception propagates and every unfinished task is cancelled.

        Raises:
            AsyncTimeoutError: when the deadline passes first
        """
        tasks = [asyncio.ensure_future(c) for c in coroutines]
        try:
            return await self.run_with_timeout(asyncio.gather(*tasks), timeout=timeout)
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.debug("Cancelled %d unfinished tasks", len(pending))

    async def run_in_batches(
        self,
        items: Sequence[T],
        func: Callable[[T], Awaitable[R]],
        batch_size: int,
        delay_seconds: float = 0.0,
    ) -> list[Any]:
        """Apply ``func`` to every item, ``batch_size`` at a time.

        Batches run one after another with ``delay_seconds`` between them.
        The result list lines up with ``items``; an item that raised holds
        its exception instance.
        """
        size = max(1, int(batch_size))
        outcomes: list[Any] = []
        batch_starts = range(0, len(items), size)

        for n, start in enumerate(batch_starts):
            if n and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)
            batch = await asyncio.gather(
                *(func(item) for item in items[start : start + size]),
                return_exceptions=True,
            )
            for outcome in batch:
                self._record(ok=not isinstance(outcome, BaseException))
            outcomes.extend(batch)

        return outcomes

    def get_health_stats(self) -> dict[str, Any]:
        if not self.enable_health_tracking:
            return {"health_tracking": "disabled"}
        stats = self._stats
        return {
            "operation_count": stats.operations,
            "error_count": stats.errors,
            "timeout_count": stats.timeouts,
            "error_rate": stats.rate(stats.errors),
            "timeout_rate": stats.rate(stats.timeouts),
            "last_error_time": stats.last_error_time,
        }


_global_orchestrator: Optional[AsyncOrchestrator] = None


def get_global_orchestrator(default_timeout: float = 30.0) -> AsyncOrchestrator:
    """Process-wide orchestrator, created on first use."""
    global _global_orchestrator
    if _global_orchestrator is None:
        _global_orchestrator = AsyncOrchestrator(default_timeout=default_timeout)
    return _global_orchestrator


def reset_global_orchestrator() -> None:
    global _global_orchestrator
    _global_orchestrator = None

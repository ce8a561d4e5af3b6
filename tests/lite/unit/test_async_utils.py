"""Unit tests for AsyncOrchestrator."""

import asyncio

import pytest

from eventmap_lite.core.async_utils import (
    AsyncOrchestrator,
    AsyncTimeoutError,
    get_global_orchestrator,
    reset_global_orchestrator,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


async def _value_after(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _fail_after(message, delay=0.0):
    await asyncio.sleep(delay)
    raise ValueError(message)


class TestRunWithTimeout:
    async def test_returns_result(self):
        orchestrator = AsyncOrchestrator()

        assert await orchestrator.run_with_timeout(_value_after(42), timeout=1.0) == 42

    async def test_timeout_raises(self):
        orchestrator = AsyncOrchestrator()

        with pytest.raises(AsyncTimeoutError):
            await orchestrator.run_with_timeout(_value_after(1, delay=1.0), timeout=0.01)

        stats = orchestrator.get_health_stats()
        assert stats["timeout_count"] == 1
        assert stats["error_count"] == 1

    async def test_errors_propagate(self):
        orchestrator = AsyncOrchestrator()

        with pytest.raises(ValueError, match="boom"):
            await orchestrator.run_with_timeout(_fail_after("boom"), timeout=1.0)


class TestGatherWithTimeout:
    async def test_preserves_order(self):
        orchestrator = AsyncOrchestrator()

        results = await orchestrator.gather_with_timeout(
            _value_after("slow", 0.02), _value_after("fast"), timeout=1.0
        )

        assert results == ["slow", "fast"]

    async def test_first_failure_cancels_the_rest(self):
        """The first exception should propagate and cancel pending tasks."""
        orchestrator = AsyncOrchestrator()
        finished = []

        async def slow():
            await asyncio.sleep(0.5)
            finished.append("slow")

        with pytest.raises(ValueError, match="first"):
            await orchestrator.gather_with_timeout(slow(), _fail_after("first"), timeout=1.0)

        await asyncio.sleep(0)
        assert finished == []

    async def test_overall_timeout(self):
        orchestrator = AsyncOrchestrator()

        with pytest.raises(AsyncTimeoutError):
            await orchestrator.gather_with_timeout(_value_after(1, delay=1.0), timeout=0.01)


class TestRunInBatches:
    async def test_order_and_exceptions_in_place(self):
        orchestrator = AsyncOrchestrator()

        async def func(item):
            if item == 3:
                raise ValueError("three")
            return item * 10

        results = await orchestrator.run_in_batches([1, 2, 3, 4, 5], func, batch_size=2)

        assert results[:2] == [10, 20]
        assert isinstance(results[2], ValueError)
        assert results[3:] == [40, 50]

    async def test_batches_run_sequentially(self):
        """No more than batch_size items should run at once."""
        orchestrator = AsyncOrchestrator()
        active = 0
        peak = 0

        async def func(item):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1
            return item

        results = await orchestrator.run_in_batches(list(range(7)), func, batch_size=3, delay_seconds=0.001)

        assert results == list(range(7))
        assert peak == 3

    async def test_empty_input(self):
        orchestrator = AsyncOrchestrator()

        assert await orchestrator.run_in_batches([], _value_after, batch_size=5) == []


class TestHealthAndGlobal:
    def test_health_disabled(self):
        orchestrator = AsyncOrchestrator(enable_health_tracking=False)

        assert orchestrator.get_health_stats() == {"health_tracking": "disabled"}

    def test_global_instance_is_reused_until_reset(self):
        first = get_global_orchestrator()

        assert get_global_orchestrator() is first
        reset_global_orchestrator()
        assert get_global_orchestrator() is not first

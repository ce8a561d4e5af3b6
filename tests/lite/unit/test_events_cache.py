"""Unit tests for the per-source events cache."""

import pytest

from eventmap_lite.models import SourceDescriptor, SourceResponse
from eventmap_lite.sources.events_cache import NO_EXPIRY, EventsCache, make_cache_key

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def response():
    return SourceResponse(events=[], source=SourceDescriptor(id="gc:abc", name="ABC"))


class TestMakeCacheKey:
    def test_rounds_window_down_to_hour(self):
        key = make_cache_key("gc:abc", "2024-06-01T10:45:12Z", "2024-06-02T23:59:59+02:00")

        assert key == "gc:abc-2024-06-01T10:00:00+00:00-2024-06-02T21:00:00+00:00"

    def test_blank_or_invalid_bounds_stay_blank(self):
        assert make_cache_key("gc:abc", None, "garbage") == "gc:abc--"


class TestEventsCache:
    async def test_hit_within_ttl(self, response):
        clock = FakeClock()
        cache = EventsCache(clock=clock)
        await cache.set(response, "gc:abc", 600, "2024-06-01T10:05:00Z", None)

        clock.now += 599
        # Same hour bucket hits
        assert await cache.get("gc:abc", 600, "2024-06-01T10:55:00Z", None) is response

    async def test_expires_after_ttl(self, response):
        clock = FakeClock()
        cache = EventsCache(clock=clock)
        await cache.set(response, "gc:abc", 600)

        clock.now += 600

        assert await cache.get("gc:abc", 600) is None
        assert len(cache) == 0

    async def test_no_expiry(self, response):
        clock = FakeClock()
        cache = EventsCache(clock=clock)
        await cache.set(response, "gc:abc", NO_EXPIRY)

        clock.now += 10**9

        assert await cache.get("gc:abc", NO_EXPIRY) is response

    async def test_get_ttl_caps_age(self, response):
        clock = FakeClock()
        cache = EventsCache(clock=clock)
        await cache.set(response, "gc:abc", NO_EXPIRY)

        clock.now += 120

        assert await cache.get("gc:abc", 60) is None

    async def test_zero_ttl_disables_caching(self, response):
        cache = EventsCache(clock=FakeClock())
        await cache.set(response, "gc:abc", 0)

        assert len(cache) == 0

    async def test_different_window_misses(self, response):
        cache = EventsCache(clock=FakeClock())
        await cache.set(response, "gc:abc", 600, "2024-06-01T10:00:00Z", None)

        assert await cache.get("gc:abc", 600, "2024-06-01T11:00:00Z", None) is None

    async def test_fifo_eviction(self, response):
        cache = EventsCache(clock=FakeClock(), max_entries=2)
        for sid in ("a", "b", "c"):
            await cache.set(response, sid, 600)

        assert await cache.get("a", 600) is None
        assert await cache.get("c", 600) is response

    async def test_stats(self, response):
        cache = EventsCache(clock=FakeClock())
        await cache.set(response, "gc:abc", 600)
        await cache.get("gc:abc", 600)
        await cache.get("other", 600)

        stats = cache.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

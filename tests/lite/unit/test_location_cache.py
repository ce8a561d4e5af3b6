"""Unit tests for the in-memory and JSON-file location caches."""

import asyncio
import json
import time

import pytest

from eventmap_lite.geo.location_cache import (
    InMemoryLocationCache,
    JsonFileLocationCache,
    LocationCache,
)
from eventmap_lite.models import LocationStatus, ResolvedLocation

pytestmark = pytest.mark.unit

OAKLAND = ResolvedLocation(
    original_location="Oakland, CA",
    status=LocationStatus.RESOLVED,
    formatted_address="Oakland, CA, USA",
    lat=37.8044,
    lng=-122.2712,
    types=["locality"],
)


class TestInMemoryLocationCache:
    async def test_get_set_and_evict(self):
        cache = InMemoryLocationCache()
        assert isinstance(cache, LocationCache)

        assert await cache.get_cached_location("Oakland, CA") is None
        await cache.cache_location("Oakland, CA", OAKLAND)
        assert await cache.get_cached_location("Oakland, CA") == OAKLAND

        assert await cache.evict("Oakland, CA") is True
        assert await cache.evict("Oakland, CA") is False
        assert len(cache) == 0

    async def test_evict_unresolved_only_drops_unresolved(self):
        cache = InMemoryLocationCache()
        await cache.cache_location("Oakland, CA", OAKLAND)
        await cache.cache_location("Atlantis", ResolvedLocation.unresolved("Atlantis"))
        await cache.cache_location("Mu", ResolvedLocation.unresolved("Mu"))

        assert await cache.evict_unresolved() == 2
        assert await cache.get_cached_location("Oakland, CA") == OAKLAND
        assert await cache.get_cached_location("Atlantis") is None


class TestJsonFileLocationCache:
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "cache" / "locations.json"
        cache = JsonFileLocationCache(path)
        await cache.cache_location("Oakland, CA", OAKLAND)
        await cache.cache_location("Atlantis", ResolvedLocation.unresolved("Atlantis"))

        reloaded = JsonFileLocationCache(path)

        assert await reloaded.get_cached_location("Oakland, CA") == OAKLAND
        restored = await reloaded.get_cached_location("Atlantis")
        assert restored.status == LocationStatus.UNRESOLVED

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["Oakland, CA"]["lat"] == pytest.approx(37.8044)
        assert on_disk["Atlantis"]["status"] == "unresolved"

    async def test_no_temp_files_left_behind(self, tmp_path):
        path = tmp_path / "locations.json"
        cache = JsonFileLocationCache(path)
        await cache.cache_location("Oakland, CA", OAKLAND)

        assert [p.name for p in tmp_path.iterdir()] == ["locations.json"]

    async def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text("{not json", encoding="utf-8")

        cache = JsonFileLocationCache(path)

        assert len(cache) == 0

    async def test_malformed_entries_are_skipped(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text(
            json.dumps(
                {
                    "Oakland, CA": OAKLAND.model_dump(mode="json"),
                    "bad": {"original_location": "bad", "status": "resolved"},
                    "worse": "not an object",
                }
            ),
            encoding="utf-8",
        )

        cache = JsonFileLocationCache(path)

        assert len(cache) == 1
        assert await cache.get_cached_location("bad") is None

    async def test_evict_unresolved_persists(self, tmp_path):
        path = tmp_path / "locations.json"
        cache = JsonFileLocationCache(path)
        await cache.cache_location("Oakland, CA", OAKLAND)
        await cache.cache_location("Atlantis", ResolvedLocation.unresolved("Atlantis"))

        assert await cache.evict_unresolved() == 1

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert list(on_disk) == ["Oakland, CA"]

    async def test_write_does_not_block_event_loop(self, tmp_path):
        """Other coroutines keep running while the file is rewritten."""
        cache = JsonFileLocationCache(tmp_path / "locations.json")
        order = []
        write_file = cache._write_snapshot

        def slow_write(data):
            time.sleep(0.2)
            write_file(data)
            order.append("written")

        cache._write_snapshot = slow_write

        async def ticker():
            for _ in range(3):
                await asyncio.sleep(0.01)
            order.append("ticked")

        await asyncio.gather(cache.cache_location("Oakland, CA", OAKLAND), ticker())

        assert order == ["ticked", "written"]
        assert await JsonFileLocationCache(tmp_path / "locations.json").get_cached_location("Oakland, CA") == OAKLAND

    async def test_concurrent_writes_keep_every_entry(self, tmp_path):
        path = tmp_path / "locations.json"
        cache = JsonFileLocationCache(path)
        names = [f"Place {i}" for i in range(10)]

        await asyncio.gather(
            *(cache.cache_location(name, ResolvedLocation.unresolved(name)) for name in names)
        )

        assert sorted(json.loads(path.read_text(encoding="utf-8"))) == sorted(names)

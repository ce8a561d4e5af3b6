from collections.abc import AsyncIterator, Generator
from typing import Any, Callable, Optional

import pytest

from eventmap_lite.core.async_utils import reset_global_orchestrator
from eventmap_lite.core.http_client import close_all_clients
from eventmap_lite.core.timezone_utils import get_zone
from eventmap_lite.models import Event, LocationStatus, ResolvedLocation

_ENV_VARS = (
    "EVENTMAP_TEST_TIME",
    "EVENTMAP_DEBUG",
    "EVENTMAP_LOG_LEVEL",
    "EVENTMAP_SOURCES",
    "EVENTMAP_EVENTS_CACHE_TTL",
    "EVENTSOURCE_API_CACHE_TTL",
    "EVENTMAP_CACHE_UNRESOLVED",
    "EVENTMAP_LOCATION_CACHE_PATH",
    "EVENTMAP_FETCH_CONCURRENCY",
    "GOOGLE_MAPS_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Clear eventmap environment overrides so host settings never leak into tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, Any, None]:
    """Drop the global orchestrator and the cached zone lookups after each test."""
    yield
    reset_global_orchestrator()
    get_zone.cache_clear()


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


def resolved(original: str, lat: float, lng: float, address: Optional[str] = None) -> ResolvedLocation:
    return ResolvedLocation(
        original_location=original,
        status=LocationStatus.RESOLVED,
        formatted_address=address or original,
        lat=lat,
        lng=lng,
    )


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for events with sensible defaults.

    Keyword arguments override Event fields; ``coords=(lat, lng)`` attaches a
    resolved location and ``unresolved=True`` attaches an unresolved one.
    """

    def factory(
        event_id: str = "evt-1",
        coords: Optional[tuple[float, float]] = None,
        unresolved: bool = False,
        **fields: Any,
    ) -> Event:
        data: dict[str, Any] = {
            "id": event_id,
            "name": f"Event {event_id}",
            "start": "2024-06-01T18:00:00Z",
            "end": "2024-06-01T20:00:00Z",
            "location": "",
        }
        data.update(fields)
        if coords is not None:
            data["resolved_location"] = resolved(data["location"] or "somewhere", *coords)
        elif unresolved:
            data["resolved_location"] = ResolvedLocation.unresolved(data["location"])
        return Event(**data)

    return factory

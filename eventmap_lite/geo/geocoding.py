"""Location resolution: cache, custom coordinate parsers, then the geocoding API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import httpx

from ..core.http_client import get_shared_client, record_client_error, record_client_success
from ..exceptions import GeocodingError
from ..models import LocationStatus, ResolvedLocation
from .location_cache import InMemoryLocationCache, JsonFileLocationCache, LocationCache
from .location_parsers import (
    DEFAULT_LOCATION_PARSERS,
    CustomLocationParser,
    parse_custom_location,
)

if TYPE_CHECKING:
    from ..config_loader import Config

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
GEOCODING_CLIENT_ID = "geocoding"


class ResolutionSource(str, Enum):
    """Where a resolution result came from."""

    CACHE = "cache"
    CUSTOM = "custom"
    API = "api"
    OTHER = "other"


@dataclass(frozen=True)
class GeocodeResult:
    """First match returned by the geocoding service."""

    formatted_address: str
    lat: float
    lng: float
    types: list[str] = field(default_factory=list)


class GeocodingClient:
    """Thin client for the Google Geocoding JSON API.

    Raises GeocodingError on transport failures, error statuses and malformed
    payloads; returns None when the service has no match for the address.
    """

    def __init__(
        self,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        url: str = GOOGLE_GEOCODE_URL,
        client_id: str = GEOCODING_CLIENT_ID,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._client = client
        self._url = url
        self._client_id = client_id

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(self._client_id)

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        client = await self._get_client()
        try:
            response = await client.get(self._url, params={"address": address, "key": self._api_key})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            await record_client_error(self._client_id)
            raise GeocodingError(f"Geocoding request failed for {address!r}: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Geocoding response for {address!r} is not JSON") from e

        await record_client_success(self._client_id)
        return self._parse_payload(address, payload)

    @staticmethod
    def _parse_payload(address: str, payload: Any) -> Optional[GeocodeResult]:
        if not isinstance(payload, dict):
            raise GeocodingError(f"Unexpected geocoding payload for {address!r}")

        status = payload.get("status")
        results = payload.get("results") or []
        if status == "ZERO_RESULTS" or (status in (None, "OK") and not results):
            return None
        if status not in (None, "OK"):
            message = payload.get("error_message")
            detail = f": {message}" if message else ""
            raise GeocodingError(f"Geocoding status {status} for {address!r}{detail}")

        first = results[0]
        try:
            location = first["geometry"]["location"]
            lat = float(location["lat"])
            lng = float(location["lng"])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError(f"Malformed geocoding result for {address!r}") from e

        types = first.get("types") or []
        return GeocodeResult(
            formatted_address=str(first.get("formatted_address") or address),
            lat=lat,
            lng=lng,
            types=[str(t) for t in types],
        )


class LocationResolver:
    """Resolve free-text locations to coordinates.

    Lookup order is cache, custom parsers, then the geocoder. Resolution never
    raises: every failure degrades to an unresolved result. Concurrent calls
    for the same trimmed string share one in-flight lookup.
    """

    def __init__(
        self,
        cache: Optional[LocationCache] = None,
        geocoder: Optional[GeocodingClient] = None,
        parsers: Sequence[CustomLocationParser] = DEFAULT_LOCATION_PARSERS,
        cache_unresolved: bool = True,
    ) -> None:
        self.cache = cache
        self.geocoder = geocoder
        self.parsers = tuple(parsers)
        self.cache_unresolved = cache_unresolved
        self._inflight: dict[str, asyncio.Future[tuple[ResolvedLocation, ResolutionSource]]] = {}

    @classmethod
    def from_config(cls, config: Config, cache: Optional[LocationCache] = None) -> LocationResolver:
        """Build a resolver with the cache and API key named in config."""
        if cache is None:
            if config.location_cache_path:
                cache = JsonFileLocationCache(config.location_cache_path)
            else:
                cache = InMemoryLocationCache()
        geocoder = None
        if config.google_maps_api_key:
            geocoder = GeocodingClient(config.google_maps_api_key)
        else:
            logger.info("No Google Maps API key configured; only custom parsers will resolve")
        return cls(
            cache=cache,
            geocoder=geocoder,
            cache_unresolved=config.cache_unresolved_locations,
        )

    async def resolve(self, location: str) -> ResolvedLocation:
        result, _source = await self.resolve_with_source(location)
        return result

    async def resolve_with_source(self, location: str) -> tuple[ResolvedLocation, ResolutionSource]:
        """Resolve one location and report where the answer came from."""
        if not location or not location.strip():
            return ResolvedLocation.unresolved(location or ""), ResolutionSource.OTHER

        key = location.strip()
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._lookup(location, key))
            self._inflight[key] = pending
            pending.add_done_callback(lambda fut, k=key: self._forget(k, fut))
        else:
            logger.debug("Joining in-flight lookup for %r", key)
        return await asyncio.shield(pending)

    def _forget(self, key: str, fut: asyncio.Future[Any]) -> None:
        if self._inflight.get(key) is fut:
            del self._inflight[key]

    async def _lookup(self, location: str, key: str) -> tuple[ResolvedLocation, ResolutionSource]:
        cached = await self._cache_get(key)
        if cached is not None:
            return cached, ResolutionSource.CACHE

        parsed = parse_custom_location(location, self.parsers)
        if parsed is not None:
            await self._cache_put(key, parsed)
            return parsed, ResolutionSource.CUSTOM

        if self.geocoder is None:
            logger.debug("Skipping geocoding for %r: no API key", key)
            return ResolvedLocation.unresolved(location), ResolutionSource.OTHER

        try:
            match = await self.geocoder.geocode(key)
        except GeocodingError as e:
            logger.warning("Geocoding failed for %r: %s", key, e)
            return ResolvedLocation.unresolved(location), ResolutionSource.OTHER
        except Exception:
            logger.exception("Unexpected geocoder error for %r", key)
            return ResolvedLocation.unresolved(location), ResolutionSource.OTHER

        if match is None:
            logger.debug("Geocoder found no results for %r", key)
            unresolved = ResolvedLocation.unresolved(location)
            if self.cache_unresolved:
                await self._cache_put(key, unresolved)
            return unresolved, ResolutionSource.API

        resolved = ResolvedLocation(
            original_location=location,
            status=LocationStatus.RESOLVED,
            formatted_address=match.formatted_address,
            lat=match.lat,
            lng=match.lng,
            types=list(match.types),
        )
        await self._cache_put(key, resolved)
        return resolved, ResolutionSource.API

    async def _cache_get(self, key: str) -> Optional[ResolvedLocation]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get_cached_location(key)
        except Exception as e:
            logger.warning("Location cache read failed for %r: %s", key, e)
            return None

    async def _cache_put(self, key: str, value: ResolvedLocation) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.cache_location(key, value)
        except Exception as e:
            logger.warning("Location cache write failed for %r: %s", key, e)

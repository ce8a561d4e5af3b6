"""Exception hierarchy for eventmap_lite.

Resolution failures never escape the geocoding layer; these types exist so
that source fetch and aggregation failures can carry an HTTP-status-like code
for user messaging ("not found" versus generic failure).
"""

from __future__ import annotations

from typing import Optional


class EventMapError(Exception):
    """Base exception for all eventmap_lite errors."""


class ConfigError(EventMapError):
    """Configuration file could not be parsed or has the wrong shape."""


class GeocodingError(EventMapError):
    """Geocoding service call failed or returned a malformed payload.

    Raised by the geocoding client only; LocationResolver converts it into
    an unresolved location.
    """


class SourceFetchError(EventMapError):
    """Fetching a single event source failed.

    Attributes:
        status_code: HTTP-status-like code describing the failure
        source_id: Prefixed source id that failed, when known
    """

    default_status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        source_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code if status_code is not None else self.default_status_code
        self.source_id = source_id


class UnsupportedSourceError(SourceFetchError):
    """No handler is registered for the source id prefix.

    Should result in HTTP 400 Bad Request response.
    """

    default_status_code = 400


class SourceNotFoundError(SourceFetchError):
    """The handler exists but the requested source does not.

    Should result in HTTP 404 Not Found response.
    """

    default_status_code = 404


class AggregationError(EventMapError):
    """One source failed, so the whole multi-source fetch failed.

    Partial merges are never returned because they would under-report totals.
    """

    def __init__(self, message: str, status_code: int = 500, source_id: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.source_id = source_id

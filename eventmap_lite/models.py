"""Data models for event aggregation, geocoding and filtering - EventMap Lite."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .core.timezone_utils import parse_iso_datetime


class LocationStatus(str, Enum):
    """Outcome of resolving a free-text location string."""

    PENDING = "pending"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class ResolvedLocation(BaseModel):
    """Coordinates (or the lack of them) for one location string.

    A resolved location always carries numeric lat/lng; pending and
    unresolved locations never do.
    """

    model_config = ConfigDict(frozen=True)

    original_location: str
    status: LocationStatus
    formatted_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    types: Optional[list[str]] = None

    @model_validator(mode="after")
    def _check_coordinates(self) -> ResolvedLocation:
        has_coords = self.lat is not None and self.lng is not None
        if self.status == LocationStatus.RESOLVED and not has_coords:
            raise ValueError("resolved location requires lat and lng")
        if self.status != LocationStatus.RESOLVED and (
            self.lat is not None or self.lng is not None
        ):
            raise ValueError(f"{self.status.value} location must not carry coordinates")
        return self

    @classmethod
    def unresolved(cls, original_location: str) -> ResolvedLocation:
        """Build an unresolved result for the given input string."""
        return cls(original_location=original_location, status=LocationStatus.UNRESOLVED)

    @property
    def is_resolved(self) -> bool:
        return self.status == LocationStatus.RESOLVED


class Event(BaseModel):
    """A single flat, immutable event record from one source."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str = ""
    start: str = Field(..., description="ISO8601 start, wall time when tz is a named zone")
    end: str = Field(..., description="ISO8601 end, wall time when tz is a named zone")
    location: str = ""
    tz: Optional[str] = Field(default=None, description="IANA zone, UNKNOWN, LOCAL or None")
    resolved_location: Optional[ResolvedLocation] = None
    source_index: Optional[int] = Field(default=None, description="1-based source position")
    original_event_url: Optional[str] = None
    description_urls: list[str] = Field(default_factory=list)

    @property
    def has_resolved_location(self) -> bool:
        """True when the event carries usable coordinates."""
        loc = self.resolved_location
        return loc is not None and loc.is_resolved


class DateRange(BaseModel):
    """Inclusive UTC date range used by the date filter."""

    model_config = ConfigDict(frozen=True)

    start_iso: str
    end_iso: str

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        start = parse_iso_datetime(self.start_iso)
        end = parse_iso_datetime(self.end_iso)
        if start > end:
            raise ValueError(f"date range start {self.start_iso} is after end {self.end_iso}")
        return self


class MapBounds(BaseModel):
    """Map viewport box in degrees.

    ``east < west`` is valid and describes a box crossing the antimeridian.
    """

    model_config = ConfigDict(frozen=True)

    north: float
    south: float
    east: float
    west: float

    @model_validator(mode="after")
    def _check_latitudes(self) -> MapBounds:
        for name in ("north", "south"):
            value = getattr(self, name)
            if not -90.0 <= value <= 90.0:
                raise ValueError(f"{name}={value} outside [-90, 90]")
        if self.south > self.north:
            raise ValueError(f"south {self.south} is greater than north {self.north}")
        return self

    @property
    def crosses_antimeridian(self) -> bool:
        return self.east < self.west

    def contains(self, lat: float, lng: float) -> bool:
        """Check whether a coordinate lies inside the box, inclusive of edges."""
        if lat < self.south or lat > self.north:
            return False
        if self.crosses_antimeridian:
            return lng >= self.west or lng <= self.east
        return self.west <= lng <= self.east


class SourceDescriptor(BaseModel):
    """Metadata describing one fetched event source."""

    id: str
    name: str = ""
    total_count: int = 0
    unknown_locations_count: int = 0
    url: Optional[str] = None
    prefix: Optional[str] = None


class SourceResponse(BaseModel):
    """Result of fetching one source: its events and descriptor."""

    events: list[Event] = Field(default_factory=list)
    source: SourceDescriptor


class AggregateResult(BaseModel):
    """Merged events from several sources plus per-source descriptors."""

    events: list[Event] = Field(default_factory=list)
    sources: list[SourceDescriptor] = Field(default_factory=list)
    duplicate_ids: list[str] = Field(
        default_factory=list, description="Ids dropped because an earlier source had them"
    )


@dataclass(frozen=True)
class FilterState:
    """Immutable snapshot of the active filters; None means not constraining."""

    date_range: Optional[DateRange] = None
    search_query: Optional[str] = None
    map_bounds: Optional[MapBounds] = None
    unknown_locations_only: bool = False


@dataclass(frozen=True)
class HiddenCounts:
    """Per-filter count of events hidden by that filter alone."""

    by_map: int = 0
    by_search: int = 0
    by_date: int = 0
    by_location_filter: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "by_map": self.by_map,
            "by_search": self.by_search,
            "by_date": self.by_date,
            "by_location_filter": self.by_location_filter,
        }


@dataclass(frozen=True)
class FilterView:
    """Result of applying a FilterState to an event list."""

    visible_events: tuple[Event, ...] = ()
    all_events: tuple[Event, ...] = ()
    hidden_counts: HiddenCounts = field(default_factory=HiddenCounts)

    @property
    def total_hidden(self) -> int:
        return len(self.all_events) - len(self.visible_events)

    def summary(self) -> dict[str, Any]:
        """Plain-dict summary for logging and the CLI."""
        return {
            "total": len(self.all_events),
            "visible": len(self.visible_events),
            "hidden": self.total_hidden,
            "hidden_counts": self.hidden_counts.as_dict(),
        }


@dataclass
class MapMarker:
    """One map pin grouping all events at the same coordinate."""

    id: str
    latitude: float
    longitude: float
    events: list[Event] = field(default_factory=list)

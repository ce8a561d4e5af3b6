"""Map marker grouping and bounds helpers for the map view."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models import Event, MapBounds, MapMarker

logger = logging.getLogger(__name__)

# San Francisco, used when no event has coordinates
DEFAULT_CENTER = (37.7749, -122.4194)
UNRESOLVED_MARKER_ID = "unresolved"
COORDINATE_DECIMALS = 6


def has_resolved_location(event: Event) -> bool:
    return event.has_resolved_location


def marker_id(event: Event) -> str:
    """Marker id from 6-decimal coordinates, or "" for events without coordinates."""
    if not event.has_resolved_location:
        return ""
    loc = event.resolved_location
    return f"{loc.lat:.{COORDINATE_DECIMALS}f},{loc.lng:.{COORDINATE_DECIMALS}f}"  # type: ignore[union-attr]


def calculate_aggregate_center(events: Iterable[Event]) -> tuple[float, float]:
    """Mean (lat, lng) of events with coordinates, or DEFAULT_CENTER when none."""
    coords = [
        (e.resolved_location.lat, e.resolved_location.lng)  # type: ignore[union-attr]
        for e in events
        if e.has_resolved_location
    ]
    if not coords:
        return DEFAULT_CENTER
    lat = sum(c[0] for c in coords) / len(coords)
    lng = sum(c[1] for c in coords) / len(coords)
    return lat, lng


def generate_map_markers(events: Sequence[Event]) -> list[MapMarker]:
    """Group events sharing coordinates into one marker each.

    Events without coordinates are collected on a single "unresolved" marker
    placed at the aggregate center.
    """
    markers: dict[str, MapMarker] = {}
    unresolved: list[Event] = []

    for event in events:
        mid = marker_id(event)
        if not mid:
            unresolved.append(event)
            continue
        if mid in markers:
            markers[mid].events.append(event)
        else:
            loc = event.resolved_location
            markers[mid] = MapMarker(
                id=mid,
                latitude=loc.lat,  # type: ignore[union-attr,arg-type]
                longitude=loc.lng,  # type: ignore[union-attr,arg-type]
                events=[event],
            )

    located = len(events) - len(unresolved)
    if unresolved:
        lat, lng = calculate_aggregate_center(events)
        markers[UNRESOLVED_MARKER_ID] = MapMarker(
            id=UNRESOLVED_MARKER_ID, latitude=lat, longitude=lng, events=unresolved
        )

    result = list(markers.values())
    logger.debug(
        "Generated %d markers from %d events with locations, %d without",
        len(result),
        located,
        len(unresolved),
    )
    return result


def round_map_bounds(bounds: MapBounds) -> MapBounds:
    return MapBounds(
        north=round(bounds.north, COORDINATE_DECIMALS),
        south=round(bounds.south, COORDINATE_DECIMALS),
        east=round(bounds.east, COORDINATE_DECIMALS),
        west=round(bounds.west, COORDINATE_DECIMALS),
    )


def calculate_bounds_from_markers(markers: Sequence[MapMarker]) -> MapBounds:
    """Smallest box holding every marker; all zeros for no markers."""
    if not markers:
        return MapBounds(north=0.0, south=0.0, east=0.0, west=0.0)
    lats = [m.latitude for m in markers]
    lngs = [m.longitude for m in markers]
    return round_map_bounds(
        MapBounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))
    )


def calculate_bounds_from_viewport(latitude: float, longitude: float, zoom: float) -> MapBounds:
    """Approximate box around a viewport center; each zoom level halves the span."""
    factor = 2**zoom
    lat_delta = 180 / factor
    lng_delta = 360 / factor
    return round_map_bounds(
        MapBounds(
            north=min(90.0, latitude + lat_delta / 2),
            south=max(-90.0, latitude - lat_delta / 2),
            east=longitude + lng_delta / 2,
            west=longitude - lng_delta / 2,
        )
    )


def truncate_location(location: str, max_length: int = 40) -> str:
    if not location:
        return ""
    if len(location) <= max_length:
        return location
    return f"{location[: max_length - 3]}..."

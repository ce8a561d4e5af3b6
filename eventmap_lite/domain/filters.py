"""Filter predicates applied by the filter pipeline.

Every predicate returns True when its filter is inactive.
"""

from __future__ import annotations

from typing import Optional

from ..models import DateRange, Event, MapBounds
from .interval_matcher import event_in_date_range

UNRESOLVED_KEYWORD = "unresolved"


def passes_map(event: Event, bounds: Optional[MapBounds]) -> bool:
    """Events without resolved coordinates are never hidden by the map."""
    if bounds is None:
        return True
    loc = event.resolved_location
    if loc is None or not loc.is_resolved:
        return True
    return bounds.contains(loc.lat, loc.lng)  # type: ignore[arg-type]


def passes_date(event: Event, date_range: Optional[DateRange]) -> bool:
    if date_range is None:
        return True
    return event_in_date_range(event, date_range)


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


def searchable_text(event: Event) -> list[str]:
    """Fields matched by free-text search."""
    fields = [event.name, event.description, event.location]
    loc = event.resolved_location
    if loc is not None:
        if loc.formatted_address:
            fields.append(loc.formatted_address)
        if loc.types:
            fields.extend(loc.types)
    return [f for f in fields if f]


def passes_search(event: Event, query: Optional[str]) -> bool:
    """Case-insensitive substring match over the event's searchable fields.

    The bare query "unresolved" is a keyword selecting events without
    resolved coordinates instead of a text match.
    """
    needle = normalize_query(query)
    if not needle:
        return True
    if needle == UNRESOLVED_KEYWORD:
        return not event.has_resolved_location
    return any(needle in text.lower() for text in searchable_text(event))


def passes_location_filter(event: Event, unknown_locations_only: bool) -> bool:
    """When enabled, only events lacking resolved coordinates pass."""
    if not unknown_locations_only:
        return True
    return not event.has_resolved_location

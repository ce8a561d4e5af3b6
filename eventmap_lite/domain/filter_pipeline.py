"""Multi-filter view computation with per-filter hidden counts.

``compute_view`` is a pure function of (events, FilterState).
``FilterEventsManager`` holds the current events and filter state, replaces
one state field per setter call and memoizes the last computed view.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..models import DateRange, Event, FilterState, FilterView, HiddenCounts, MapBounds
from .filters import passes_date, passes_location_filter, passes_map, passes_search

logger = logging.getLogger(__name__)

DateRangeInput = Union[DateRange, Mapping[str, Any], None]
MapBoundsInput = Union[MapBounds, Mapping[str, Any], None]


def compute_view(events: Iterable[Event], state: FilterState) -> FilterView:
    """Apply all filters and count, for each filter, events hidden by it alone.

    An event counts toward a filter's hidden count only when every other
    filter passes it, so an event failing two filters is hidden but is not
    attributed to either.
    """
    all_events = tuple(events)
    visible: list[Event] = []
    by_map = by_search = by_date = by_location = 0

    for event in all_events:
        checks = (
            passes_map(event, state.map_bounds),
            passes_search(event, state.search_query),
            passes_date(event, state.date_range),
            passes_location_filter(event, state.unknown_locations_only),
        )
        failed = checks.count(False)
        if failed == 0:
            visible.append(event)
            continue
        if failed > 1:
            continue
        map_ok, search_ok, date_ok, _location_ok = checks
        if not map_ok:
            by_map += 1
        elif not search_ok:
            by_search += 1
        elif not date_ok:
            by_date += 1
        else:
            by_location += 1

    return FilterView(
        visible_events=tuple(visible),
        all_events=all_events,
        hidden_counts=HiddenCounts(
            by_map=by_map,
            by_search=by_search,
            by_date=by_date,
            by_location_filter=by_location,
        ),
    )


def coerce_date_range(value: DateRangeInput) -> Optional[DateRange]:
    """Build a DateRange from a model or a mapping with start/end keys.

    Raises:
        ValidationError: for unparseable values or start after end
    """
    if value is None or isinstance(value, DateRange):
        return value
    data = dict(value)
    if "start_iso" not in data and "start" in data:
        data["start_iso"] = data.pop("start")
    if "end_iso" not in data and "end" in data:
        data["end_iso"] = data.pop("end")
    return DateRange.model_validate(data)


def coerce_map_bounds(value: MapBoundsInput) -> Optional[MapBounds]:
    """Build MapBounds from a model or a mapping.

    Raises:
        ValidationError: for non-numeric values, south > north or bad latitudes
    """
    if value is None or isinstance(value, MapBounds):
        return value
    return MapBounds.model_validate(dict(value))


class FilterEventsManager:
    """Holder for the event list and active filters behind the map/list UI."""

    def __init__(self, events: Optional[Iterable[Event]] = None) -> None:
        self._events: tuple[Event, ...] = tuple(events or ())
        self._state = FilterState()
        self._version = 0
        self._memo_key: Optional[tuple[Any, ...]] = None
        self._memo_view: Optional[FilterView] = None

    @property
    def events(self) -> tuple[Event, ...]:
        return self._events

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def version(self) -> int:
        """Incremented on every change to events or filter state."""
        return self._version

    @property
    def events_with_locations(self) -> list[Event]:
        return [e for e in self._events if e.has_resolved_location]

    @property
    def events_unknown_locations(self) -> list[Event]:
        return [e for e in self._events if not e.has_resolved_location]

    def _bump(self) -> None:
        self._version += 1

    def _replace_state(self, **changes: Any) -> bool:
        new_state = replace(self._state, **changes)
        if new_state != self._state:
            self._state = new_state
            self._bump()
        return True

    def reset(self) -> None:
        """Clear events and all filters."""
        self._events = ()
        self._state = FilterState()
        self._bump()

    def reset_all_filters(self) -> None:
        """Clear all filters, keeping the events."""
        if self._state != FilterState():
            self._state = FilterState()
            self._bump()

    def set_events(self, events: Iterable[Event]) -> None:
        self._events = tuple(events)
        self._bump()
        logger.debug("Filter manager holds %d events", len(self._events))

    def set_date_range(self, value: DateRangeInput) -> bool:
        """Set or clear the date filter. Returns False (state unchanged) when invalid."""
        try:
            date_range = coerce_date_range(value)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Ignoring invalid date range %r: %s", value, e)
            return False
        return self._replace_state(date_range=date_range)

    def set_search_query(self, query: Optional[str]) -> bool:
        """Set or clear the search text; blank text clears it."""
        if query is not None and not isinstance(query, str):
            logger.warning("Ignoring non-string search query %r", query)
            return False
        cleaned = query.strip() if query else ""
        return self._replace_state(search_query=cleaned or None)

    def set_map_bounds(self, value: MapBoundsInput) -> bool:
        """Set or clear the map viewport. Returns False (state unchanged) when invalid."""
        try:
            bounds = coerce_map_bounds(value)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Ignoring invalid map bounds %r: %s", value, e)
            return False
        return self._replace_state(map_bounds=bounds)

    def set_unknown_locations_only(self, enabled: bool) -> bool:
        return self._replace_state(unknown_locations_only=bool(enabled))

    def get_view(self, override_map_bounds: MapBoundsInput = None) -> FilterView:
        """Return the filtered view, recomputing only after a change.

        ``override_map_bounds`` replaces the stored bounds for this call only.
        An invalid override is ignored with a warning.
        """
        state = self._state
        override: Optional[MapBounds] = None
        if override_map_bounds is not None:
            try:
                override = coerce_map_bounds(override_map_bounds)
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning("Ignoring invalid override bounds %r: %s", override_map_bounds, e)
        if override is not None:
            state = replace(state, map_bounds=override)

        key = (self._version, override)
        if self._memo_view is not None and self._memo_key == key:
            return self._memo_view

        view = compute_view(self._events, state)
        self._memo_key = key
        self._memo_view = view
        logger.debug("Computed filter view: %s", view.summary())
        return view

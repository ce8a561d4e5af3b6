"""Timezone-aware overlap test between an event and a UTC date range."""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from ..core.timezone_utils import (
    UTC,
    get_zone,
    is_literal_timezone,
    parse_iso_datetime,
    wall_time_to_utc,
)
from ..models import DateRange, Event

logger = logging.getLogger(__name__)

_ZERO = datetime.timedelta(0)


def to_utc_instant(value: str, tz: Optional[str]) -> datetime.datetime:
    """Convert an event timestamp to an aware UTC datetime.

    - literal tz (None, UNKNOWN, UNKNOWN_TZ, LOCAL) or an unknown zone name:
      the string is read as-is, naive values as UTC
    - named zone: naive and UTC-suffixed values are wall time in that zone;
      values with a non-zero offset are already absolute

    Raises:
        ValueError: if ``value`` is not ISO-8601
    """
    parsed = parse_iso_datetime(value)
    if is_literal_timezone(tz):
        return parsed.astimezone(UTC)

    zone = get_zone(tz.strip())  # type: ignore[union-attr]
    if zone is None:
        return parsed.astimezone(UTC)

    if parsed.utcoffset() == _ZERO:
        return wall_time_to_utc(parsed, zone)
    return parsed.astimezone(UTC)


def event_in_date_range(event: Event, date_range: DateRange) -> bool:
    """Return True when the event interval overlaps the range, inclusive at both ends.

    Events with unparseable start or end never match.
    """
    range_start = parse_iso_datetime(date_range.start_iso)
    range_end = parse_iso_datetime(date_range.end_iso)

    try:
        start = to_utc_instant(event.start, event.tz)
        end = to_utc_instant(event.end, event.tz)
    except (ValueError, OverflowError) as e:
        logger.debug("Event %s has unparseable times (%r, %r): %s", event.id, event.start, event.end, e)
        return False

    return end >= range_start and start <= range_end

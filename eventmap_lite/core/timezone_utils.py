"""Timezone lookup, ISO parsing and current-time helpers for eventmap_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache
from typing import Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc

# Event tz values meaning "times are already absolute, parse them literally"
UNKNOWN_TZ = "UNKNOWN"
LOCAL_TZ = "LOCAL"
LITERAL_TZ_SENTINELS = frozenset({UNKNOWN_TZ, LOCAL_TZ, "UNKNOWN_TZ"})

# Obsolete or shorthand names seen in calendar feeds, mapped to canonical IANA ids
TZ_ALIAS_MAP: dict[str, str] = {
    "US/Pacific": "America/Los_Angeles",
    "US/Mountain": "America/Denver",
    "US/Central": "America/Chicago",
    "US/Eastern": "America/New_York",
    "US/Alaska": "America/Anchorage",
    "US/Hawaii": "Pacific/Honolulu",
    "US/Arizona": "America/Phoenix",
    "GMT": "UTC",
    "Etc/UTC": "UTC",
    "Etc/GMT": "UTC",
    "Zulu": "UTC",
    "PST8PDT": "America/Los_Angeles",
    "EST5EDT": "America/New_York",
    "Asia/Rangoon": "Asia/Yangon",
    "America/Godthab": "America/Nuuk",
}


def is_literal_timezone(tz: Optional[str]) -> bool:
    """Return True when an event tz value means "no zone to apply"."""
    return not tz or tz.strip().upper() in LITERAL_TZ_SENTINELS


@lru_cache(maxsize=256)
def get_zone(tz_name: str) -> Optional[zoneinfo.ZoneInfo]:
    """Look up a ZoneInfo by name, resolving aliases.

    Results are cached, including misses.

    Args:
        tz_name: IANA timezone identifier or a known alias

    Returns:
        ZoneInfo instance, or None when the name is not a valid zone
    """
    canonical = TZ_ALIAS_MAP.get(tz_name, tz_name)
    try:
        return zoneinfo.ZoneInfo(canonical)
    except Exception as e:
        logger.warning("Unrecognized timezone %r (%s); times will be read literally", tz_name, e)
        return None


def is_valid_timezone(tz_name: str) -> bool:
    """Check whether a timezone name can be resolved to a zone."""
    if not tz_name:
        return False
    return get_zone(tz_name) is not None


def parse_iso_datetime(value: str) -> datetime.datetime:
    """Parse an ISO-8601 string into an aware datetime.

    Naive values are treated as UTC.

    Raises:
        ValueError: if the value is not an ISO-8601 date or date-time
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid ISO-8601 value: {value!r}")
    dt = date_parser.isoparse(value.strip())
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def wall_time_to_utc(value: datetime.datetime, zone: zoneinfo.ZoneInfo) -> datetime.datetime:
    """Interpret the wall-clock components of ``value`` in ``zone`` and return UTC.

    Any existing tzinfo is discarded. An ambiguous wall time (DST fall-back)
    resolves to its first occurrence.
    """
    local = value.replace(tzinfo=zone, fold=0)
    return local.astimezone(UTC)


def round_down_to_hour(value: Optional[str]) -> str:
    """Round an ISO timestamp down to the hour, as a UTC ISO string.

    Returns an empty string for missing or unparseable input.
    """
    if not value:
        return ""
    try:
        dt = parse_iso_datetime(value)
    except (ValueError, OverflowError):
        return ""
    return dt.astimezone(UTC).replace(minute=0, second=0, microsecond=0).isoformat()


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via EVENTMAP_TEST_TIME environment variable
    (ISO 8601, e.g. "2025-10-27T08:20:00-07:00").
    """
    test_time = os.environ.get("EVENTMAP_TEST_TIME")
    if test_time:
        try:
            return parse_iso_datetime(test_time).astimezone(UTC)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse EVENTMAP_TEST_TIME=%r: %s", test_time, e)

    return datetime.datetime.now(UTC)

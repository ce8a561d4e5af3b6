"""Custom location parsers that resolve coordinate strings without a network call.

Each parser takes the raw location string and returns a resolved
ResolvedLocation, or None when the string is not in its format.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Optional

from ..models import LocationStatus, ResolvedLocation

logger = logging.getLogger(__name__)

CustomLocationParser = Callable[[str], Optional[ResolvedLocation]]

COORDINATE_DECIMALS = 6

# "37.774929,-122.419418" / " 37.77, -122.41 "
_LAT_LON_RE = re.compile(
    r"^([-+]?\d{1,3}\.\d{2,6})\s*,\s*([-+]?\d{1,3}\.\d{2,6})$"
)

# 41°07'16.0"N 1°00'16.9"E
_DEG_MIN_SEC_RE = re.compile(
    r"""^(\d{1,3})\s*°\s*(\d{1,2})\s*['′]\s*(\d{1,2}(?:\.\d+)?)\s*["″]\s*([NS])
        [\s,]+
        (\d{1,3})\s*°\s*(\d{1,2})\s*['′]\s*(\d{1,2}(?:\.\d+)?)\s*["″]\s*([EW])$""",
    re.IGNORECASE | re.VERBOSE,
)

# N 41° 07.266 E 001° 00.281
_DEG_MIN_DECIMAL_RE = re.compile(
    r"""^([NS])\s*(\d{1,3})\s*°\s*(\d{1,2}(?:\.\d+)?)\s*['′]?
        [\s,]+
        ([EW])\s*(\d{1,3})\s*°\s*(\d{1,2}(?:\.\d+)?)\s*['′]?$""",
    re.IGNORECASE | re.VERBOSE,
)


def _to_decimal_degrees(degrees: str, minutes: str, seconds: str, hemisphere: str) -> float:
    value = float(degrees) + float(minutes) / 60 + float(seconds) / 3600
    if hemisphere.upper() in ("S", "W"):
        value = -value
    return value


def _build_resolved(original: str, lat: float, lng: float) -> Optional[ResolvedLocation]:
    """Round, range-check and wrap a coordinate pair."""
    lat = round(lat, COORDINATE_DECIMALS)
    lng = round(lng, COORDINATE_DECIMALS)
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        logger.debug("Coordinates out of range for %r: %s,%s", original, lat, lng)
        return None
    return ResolvedLocation(
        original_location=original,
        status=LocationStatus.RESOLVED,
        formatted_address=f"{lat:.{COORDINATE_DECIMALS}f},{lng:.{COORDINATE_DECIMALS}f}",
        lat=lat,
        lng=lng,
    )


def parse_lat_lon(location: str) -> Optional[ResolvedLocation]:
    """Parse a plain decimal ``"lat,lng"`` pair (2 to 6 decimal places)."""
    match = _LAT_LON_RE.match(location.strip())
    if not match:
        return None
    return _build_resolved(location, float(match.group(1)), float(match.group(2)))


def parse_deg_min_sec(location: str) -> Optional[ResolvedLocation]:
    """Parse degrees-minutes-seconds with trailing hemisphere letters."""
    match = _DEG_MIN_SEC_RE.match(location.strip())
    if not match:
        return None
    lat_d, lat_m, lat_s, lat_h, lng_d, lng_m, lng_s, lng_h = match.groups()
    lat = _to_decimal_degrees(lat_d, lat_m, lat_s, lat_h)
    lng = _to_decimal_degrees(lng_d, lng_m, lng_s, lng_h)
    return _build_resolved(location, lat, lng)


def parse_deg_min_decimal(location: str) -> Optional[ResolvedLocation]:
    """Parse hemisphere-prefixed degrees and decimal minutes."""
    match = _DEG_MIN_DECIMAL_RE.match(location.strip())
    if not match:
        return None
    lat_h, lat_d, lat_m, lng_h, lng_d, lng_m = match.groups()
    lat = _to_decimal_degrees(lat_d, lat_m, "0", lat_h)
    lng = _to_decimal_degrees(lng_d, lng_m, "0", lng_h)
    return _build_resolved(location, lat, lng)


DEFAULT_LOCATION_PARSERS: tuple[CustomLocationParser, ...] = (
    parse_lat_lon,
    parse_deg_min_sec,
    parse_deg_min_decimal,
)


def parse_custom_location(
    location: str,
    parsers: Sequence[CustomLocationParser] = DEFAULT_LOCATION_PARSERS,
) -> Optional[ResolvedLocation]:
    """Return the result of the first parser that recognizes ``location``."""
    for parser in parsers:
        result = parser(location)
        if result is not None:
            logger.debug("Location %r parsed by %s", location, getattr(parser, "__name__", parser))
            return result
    return None

"""Unit tests for the custom coordinate location parsers."""

import pytest

from eventmap_lite.geo.location_parsers import (
    DEFAULT_LOCATION_PARSERS,
    parse_custom_location,
    parse_deg_min_decimal,
    parse_deg_min_sec,
    parse_lat_lon,
)
from eventmap_lite.models import LocationStatus

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestParseLatLon:
    """Tests for decimal "lat,lng" strings."""

    def test_parses_plain_pair(self):
        result = parse_lat_lon("37.774929,-122.419418")

        assert result is not None
        assert result.status == LocationStatus.RESOLVED
        assert result.lat == pytest.approx(37.774929)
        assert result.lng == pytest.approx(-122.419418)
        assert result.formatted_address == "37.774929,-122.419418"
        assert result.original_location == "37.774929,-122.419418"

    def test_keeps_untrimmed_original_and_tolerates_spaces(self):
        result = parse_lat_lon(" 37.774929, -122.419418 ")

        assert result is not None
        assert result.original_location == " 37.774929, -122.419418 "
        assert result.formatted_address == "37.774929,-122.419418"

    def test_short_decimals_are_padded_in_formatted_address(self):
        result = parse_lat_lon("+37.77,-122.41")

        assert result is not None
        assert result.formatted_address == "37.770000,-122.410000"

    @pytest.mark.parametrize(
        "value",
        ["invalid", "37.774929", "37.774929,abc", "37,-122", "37.1234567,-122.1", "95.00,10.00"],
    )
    def test_rejects_other_formats(self, value):
        assert parse_lat_lon(value) is None


class TestParseDegMinSec:
    """Tests for degrees/minutes/seconds with hemisphere suffixes."""

    def test_parses_north_east(self):
        result = parse_deg_min_sec("41°07'16.0\"N 1°00'16.9\"E")

        assert result is not None
        assert result.lat == pytest.approx(41.121111, abs=1e-6)
        assert result.lng == pytest.approx(1.004694, abs=1e-6)
        assert result.formatted_address == "41.121111,1.004694"

    def test_south_and_west_are_negative(self):
        result = parse_deg_min_sec("33°51'54.5\"S 151°12'35.6\"W")

        assert result is not None
        assert result.lat < 0
        assert result.lng < 0

    @pytest.mark.parametrize("value", ["41°07'16.0\"N", "41°07'16.0\"X 1°00'16.9\"E", "hello"])
    def test_rejects_incomplete_or_bad_hemisphere(self, value):
        assert parse_deg_min_sec(value) is None


class TestParseDegMinDecimal:
    """Tests for hemisphere-prefixed degrees and decimal minutes."""

    def test_parses_prefixed_pair(self):
        result = parse_deg_min_decimal("N 41° 07.266 E 001° 00.281")

        assert result is not None
        assert result.lat == pytest.approx(41.1211, abs=1e-6)
        assert result.lng == pytest.approx(1.004683, abs=1e-6)
        assert result.formatted_address == "41.121100,1.004683"

    def test_south_west(self):
        result = parse_deg_min_decimal("S 33° 51.908 W 151° 12.593")

        assert result is not None
        assert result.lat == pytest.approx(-(33 + 51.908 / 60), abs=1e-6)
        assert result.lng == pytest.approx(-(151 + 12.593 / 60), abs=1e-6)

    @pytest.mark.parametrize("value", ["N 41° 07.266", "X 41° 07.266 E 001° 00.281"])
    def test_rejects_invalid(self, value):
        assert parse_deg_min_decimal(value) is None


class TestParseCustomLocation:
    """Tests for the ordered parser chain."""

    def test_lat_lon_wins_for_decimal_pairs(self):
        result = parse_custom_location("37.774929,-122.419418")

        assert result is not None
        assert result.formatted_address == "37.774929,-122.419418"

    def test_falls_through_to_later_parsers(self):
        result = parse_custom_location("N 41° 07.266 E 001° 00.281")

        assert result is not None
        assert result.lat == pytest.approx(41.1211, abs=1e-6)

    def test_free_text_is_not_parsed(self):
        assert parse_custom_location("Golden Gate Park, San Francisco") is None

    def test_custom_parser_list_is_respected(self):
        calls = []

        def recording_parser(value):
            calls.append(value)
            return None

        assert parse_custom_location("37.77,-122.41", [recording_parser]) is None
        assert calls == ["37.77,-122.41"]

    def test_default_order(self):
        assert DEFAULT_LOCATION_PARSERS == (parse_lat_lon, parse_deg_min_sec, parse_deg_min_decimal)

"""Tests for venue location string parsing."""
import pytest

from app.services.sync.utils.coordinates import extract_coordinates, to_decimal


class TestExtractCoordinates:
    """Each supported strMap format, plus rejection cases."""

    # Supported formats
    # ─────────────────────────────────────────────────────────────

    def test_decimal_pair(self):
        """Should parse a comma-separated decimal pair."""
        coords = extract_coordinates("30.3877, -97.7195")
        assert coords.lat == pytest.approx(30.3877)
        assert coords.lon == pytest.approx(-97.7195)

    def test_maps_url(self):
        """Should parse the q= parameter of a maps URL."""
        coords = extract_coordinates("https://maps.google.com/?q=40.4530,-3.6883")
        assert coords.lat == pytest.approx(40.4530)
        assert coords.lon == pytest.approx(-3.6883)

    def test_decimal_degrees_with_cardinals(self):
        """Should negate south and west components."""
        coords = extract_coordinates("34.013°N 118.285°W")
        assert coords.lat == pytest.approx(34.013)
        assert coords.lon == pytest.approx(-118.285)

    def test_degrees_decimal_minutes(self):
        """Should convert degrees plus decimal minutes."""
        coords = extract_coordinates("29°45.132′N 95°21.144′W")
        assert coords.lat == pytest.approx(29 + 45.132 / 60)
        assert coords.lon == pytest.approx(-(95 + 21.144 / 60))

    def test_degrees_minutes_seconds(self):
        """Should convert integer DMS."""
        coords = extract_coordinates("39°28′29″N 0°21′30″W")
        assert coords.lat == pytest.approx(39.474722, abs=1e-6)
        assert coords.lon == pytest.approx(-0.358333, abs=1e-6)

    def test_dms_fractional_seconds(self):
        """Should convert DMS with fractional seconds."""
        coords = extract_coordinates("39°58′6.46″N 83°1′1.52″W")
        assert coords.lat == pytest.approx(39 + 58 / 60 + 6.46 / 3600)
        assert coords.lon == pytest.approx(-(83 + 1 / 60 + 1.52 / 3600))

    def test_ascii_prime_marks(self):
        """Should accept ' and \" in place of the prime symbols."""
        coords = extract_coordinates("39°28'29\"N 0°21'30\"W")
        assert coords.lat == pytest.approx(39.474722, abs=1e-6)
        assert coords.lon == pytest.approx(-0.358333, abs=1e-6)

    def test_southern_hemisphere(self):
        coords = extract_coordinates("33.891°S 151.225°E")
        assert coords.lat == pytest.approx(-33.891)
        assert coords.lon == pytest.approx(151.225)

    # Rejections
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.parametrize("raw", [None, "", "   ", "Somewhere near the river", "Madrid, Spain"])
    def test_unparsable_returns_none(self, raw):
        """Should return None when no format matches."""
        assert extract_coordinates(raw) is None

    def test_out_of_range_returns_none(self):
        """Should reject a pair outside valid latitude/longitude."""
        assert extract_coordinates("123.4, 200.1") is None


class TestToDecimal:

    def test_north_east_positive(self):
        assert to_decimal(10, 30, 0, "N") == pytest.approx(10.5)
        assert to_decimal(10, 30, 0, "E") == pytest.approx(10.5)

    def test_south_west_negative(self):
        assert to_decimal(10, 30, 0, "S") == pytest.approx(-10.5)
        assert to_decimal(10, 30, 0, "w") == pytest.approx(-10.5)

"""Coordinate extraction from free-text venue location strings.

TheSportsDB's `strMap` field carries whatever the contributor pasted:
- Decimal pair: "30.3877, -97.7195"
- Maps URL: "https://maps.google.com/?q=40.4530,-3.6883"
- Decimal degrees with cardinals: "34.013°N 118.285°W"
- Degrees + decimal minutes: "29°45.132′N 95°21.144′W"
- Degrees/minutes/seconds: "39°28′29″N 0°21′30″W"
- DMS with fractional seconds: "39°58′6.46″N 83°1′1.52″W"

Formats are tried in that order; the first one that parses to an
in-range coordinate wins.
"""
import re
from typing import Callable, List, Optional, Tuple

from app.models.schemas import Coordinates

_NUM = r"[+-]?\d+\.?\d*"
_MIN = r"[′']"
_SEC = r"[″\"]"

DECIMAL_PAIR = re.compile(rf"({_NUM})\s*,\s*({_NUM})")
URL_QUERY = re.compile(rf"[?&]q=({_NUM}),({_NUM})")
DECIMAL_CARDINAL = re.compile(r"(\d+\.?\d*)°([NSEW])\s+(\d+\.?\d*)°([NSEW])")
DEGREES_MINUTES = re.compile(
    rf"(\d+)°(\d+\.?\d*){_MIN}([NSEW])\s+(\d+)°(\d+\.?\d*){_MIN}([NSEW])"
)
DMS = re.compile(
    rf"(\d+)°(\d+){_MIN}(\d+){_SEC}([NSEW])\s+(\d+)°(\d+){_MIN}(\d+){_SEC}([NSEW])"
)
DMS_FRACTIONAL = re.compile(
    rf"(\d+)°(\d+){_MIN}(\d+\.?\d*){_SEC}([NSEW])\s+(\d+)°(\d+){_MIN}(\d+\.?\d*){_SEC}([NSEW])"
)


def to_decimal(degrees: float, minutes: float = 0.0, seconds: float = 0.0, direction: str = "N") -> float:
    """
    Convert degrees/minutes/seconds plus a cardinal direction to decimal degrees.

    Examples:
        >>> to_decimal(39, 28, 29, "N")
        39.47472222222222
        >>> to_decimal(0, 21, 30, "W")
        -0.35833333333333334
    """
    value = degrees + minutes / 60 + seconds / 3600
    if direction.upper() in ("S", "W"):
        value = -value
    return value


def _in_range(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180


def _pair(match: re.Match) -> Tuple[float, float]:
    return float(match.group(1)), float(match.group(2))


def _decimal_cardinal(match: re.Match) -> Tuple[float, float]:
    lat = to_decimal(float(match.group(1)), direction=match.group(2))
    lon = to_decimal(float(match.group(3)), direction=match.group(4))
    return lat, lon


def _degrees_minutes(match: re.Match) -> Tuple[float, float]:
    g = match.groups()
    lat = to_decimal(float(g[0]), float(g[1]), direction=g[2])
    lon = to_decimal(float(g[3]), float(g[4]), direction=g[5])
    return lat, lon


def _dms(match: re.Match) -> Tuple[float, float]:
    g = match.groups()
    lat = to_decimal(float(g[0]), float(g[1]), float(g[2]), g[3])
    lon = to_decimal(float(g[4]), float(g[5]), float(g[6]), g[7])
    return lat, lon


_PARSERS: List[Tuple[re.Pattern, Callable[[re.Match], Tuple[float, float]]]] = [
    (DECIMAL_PAIR, _pair),
    (URL_QUERY, _pair),
    (DECIMAL_CARDINAL, _decimal_cardinal),
    (DEGREES_MINUTES, _degrees_minutes),
    (DMS, _dms),
    (DMS_FRACTIONAL, _dms),
]


def extract_coordinates(raw: Optional[str]) -> Optional[Coordinates]:
    """
    Parse a venue location string into decimal coordinates.

    Args:
        raw: Free-text location (TheSportsDB strMap)

    Returns:
        Coordinates, or None when no format yields an in-range pair

    Examples:
        >>> extract_coordinates("30.3877, -97.7195")
        Coordinates(lat=30.3877, lon=-97.7195)
        >>> extract_coordinates("Somewhere in Madrid") is None
        True
    """
    if raw is None or not raw.strip():
        return None

    for pattern, parse in _PARSERS:
        match = pattern.search(raw)
        if not match:
            continue
        lat, lon = parse(match)
        if _in_range(lat, lon):
            return Coordinates(lat=lat, lon=lon)

    return None

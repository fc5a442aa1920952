"""
PollutionWatch - Geospatial Utilities
Coordinate parsing and range checks shared by the form and the map.
"""

import math
from typing import Any, Optional, Tuple
from dataclasses import dataclass

from src.core.constants import LATITUDE_RANGE, LONGITUDE_RANGE


@dataclass(frozen=True)
class Coordinates:
    """Geographic point with latitude and longitude."""
    latitude: float
    longitude: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


def parse_coordinate(value: Any) -> Optional[float]:
    """
    Convert a raw coordinate value to a finite float.

    Accepts numbers and numeric strings. Booleans, blanks, NaN and
    infinities are treated as absent.

    Returns:
        The float value, or None if the value is not a usable number
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    if not math.isfinite(number):
        return None

    return number


def is_valid_latitude(latitude: float) -> bool:
    return LATITUDE_RANGE[0] <= latitude <= LATITUDE_RANGE[1]


def is_valid_longitude(longitude: float) -> bool:
    return LONGITUDE_RANGE[0] <= longitude <= LONGITUDE_RANGE[1]


def to_coordinates(latitude: Any, longitude: Any) -> Optional[Coordinates]:
    """
    Build Coordinates from raw values if both are numeric and in range.

    Args:
        latitude: Raw latitude (number or string)
        longitude: Raw longitude (number or string)

    Returns:
        Coordinates, or None when either value is missing, non-numeric
        or outside the valid geographic range
    """
    lat = parse_coordinate(latitude)
    lon = parse_coordinate(longitude)

    if lat is None or lon is None:
        return None

    if not is_valid_latitude(lat) or not is_valid_longitude(lon):
        return None

    return Coordinates(latitude=lat, longitude=lon)

"""
Geographic helpers used by ride matching.
"""

from math import radians, sin, cos, atan2, sqrt, isfinite

from ..config import settings


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometers (haversine).

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometers. NaN inputs yield NaN.
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return settings.earth_radius_km * c


def is_coordinate(value) -> bool:
    """True for a real, finite int/float (bools excluded)"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isfinite(value)

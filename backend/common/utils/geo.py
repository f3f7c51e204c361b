"""
Geographic utility functions.

This module provides the geospatial helpers used by booking and dispatch.
None of these functions raise on bad input: invalid coordinates simply make
the distance unmeasurable (``None``).
"""

import math
from math import radians, cos, sin, asin, sqrt
from numbers import Real
from typing import Any, Dict, Optional, Tuple

EARTH_RADIUS_KM = 6371

# Client-side equality tolerance for pickup/dropoff (degrees)
SAME_POINT_TOLERANCE = 0.0001


def _coordinates(point: Any) -> Tuple[Any, Any]:
    """Pull (lat, lng) out of a mapping, a model-like object or a pair."""
    if point is None:
        return None, None
    if isinstance(point, dict):
        return point.get("lat"), point.get("lng")
    if isinstance(point, (tuple, list)) and len(point) == 2:
        return point[0], point[1]
    return getattr(point, "lat", None), getattr(point, "lng", None)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def is_valid_coordinate(point: Any) -> bool:
    """
    Check a point has a usable latitude/longitude.

    Args:
        point: ``{"lat": .., "lng": ..}`` mapping or a ``(lat, lng)`` pair

    Returns:
        True iff both values are finite numbers, latitude is within
        [-90, 90] and longitude within [-180, 180]
    """
    lat, lng = _coordinates(point)
    if not (_is_finite_number(lat) and _is_finite_number(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def great_circle_distance_km(a: Any, b: Any) -> Optional[float]:
    """
    Calculate distance between two points in kilometres using the Haversine formula.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in km, or None if either point is not a valid coordinate
    """
    if not is_valid_coordinate(a) or not is_valid_coordinate(b):
        return None

    lat1, lon1 = _coordinates(a)
    lat2, lon2 = _coordinates(b)
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(h))


def normalize_point(point: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Coerce an inbound location payload to ``{address, lat, lng}``."""
    point = point or {}
    normalized = {"address": str(point.get("address") or "").strip()}
    for key in ("lat", "lng"):
        try:
            value = float(point.get(key))
        except (TypeError, ValueError):
            value = None
        normalized[key] = value if value is not None and math.isfinite(value) else None
    return normalized


def is_same_point(a: Any, b: Any, tolerance: float = SAME_POINT_TOLERANCE) -> bool:
    """True when both points are valid and closer than ``tolerance`` degrees on each axis."""
    if not is_valid_coordinate(a) or not is_valid_coordinate(b):
        return False
    lat1, lng1 = _coordinates(a)
    lat2, lng2 = _coordinates(b)
    return abs(lat1 - lat2) < tolerance and abs(lng1 - lng2) < tolerance

# territory_system/utils/geo.py
"""
Great-circle distance and coordinate helpers (miles).
"""
import math
from typing import Tuple

from core.errors import ValidationError

EARTH_RADIUS_MILES = 3959.0

# Miles per degree of latitude on a 3959-mile sphere
MILES_PER_DEGREE = 2 * math.pi * EARTH_RADIUS_MILES / 360


def distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Haversine distance between two points.

    Symmetric, zero for identical points, and safe for antipodal points:
    the arcsine argument is clamped to [0, 1] against rounding overshoot.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dPhi = math.radians(lat2 - lat1)
    dLambda = math.radians(lng2 - lng1)

    a = math.sin(dPhi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dLambda / 2) ** 2
    a = min(1.0, max(0.0, a))

    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


def validate_coordinates(lat: float, lng: float) -> None:
    """
    Raises:
        ValidationError: Non-numeric, non-finite or out-of-range coordinates
    """
    for name, value, limit in (("lat", lat, 90), ("lng", lng, 180)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name} must be a number", field=name)
        if not math.isfinite(value):
            raise ValidationError(f"{name} must be finite", field=name)
        if abs(value) > limit:
            raise ValidationError(f"{name} must be within ±{limit}", field=name)


def bounding_box(lat: float, lng: float, miles: float) -> Tuple[float, float, float, float]:
    """
    Lat/lng box containing every point within `miles` of the centre.

    Returns:
        (min_lat, max_lat, min_lng, max_lng). Longitude spans the full
        range when the box touches a pole or the antimeridian.
    """
    dLat = miles / MILES_PER_DEGREE
    minLat = max(-90.0, lat - dLat)
    maxLat = min(90.0, lat + dLat)

    if minLat <= -90.0 or maxLat >= 90.0:
        return minLat, maxLat, -180.0, 180.0

    # Widest longitude span of the circle occurs at the latitude nearest a pole
    widestLat = max(abs(minLat), abs(maxLat))
    dLng = miles / (MILES_PER_DEGREE * math.cos(math.radians(widestLat)))
    if lng - dLng < -180.0 or lng + dLng > 180.0:
        return minLat, maxLat, -180.0, 180.0

    return minLat, maxLat, lng - dLng, lng + dLng

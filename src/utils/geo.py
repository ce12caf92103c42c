"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, isfinite, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two lat/lng points in kilometers.

    Args:
        lat1: Latitude of the first point.
        lng1: Longitude of the first point.
        lat2: Latitude of the second point.
        lng2: Longitude of the second point.

    Returns:
        Distance in kilometers on a sphere of radius ``EARTH_RADIUS_KM``.
    """

    delta_lat = radians(lat2 - lat1)
    delta_lng = radians(lng2 - lng1)

    a = sin(delta_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(
        delta_lng / 2
    ) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def to_coordinate(value: object) -> float | None:
    """Coerce a stored coordinate to float, or None if it is unusable."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def distance_between_km(
    lat1: object, lng1: object, lat2: object, lng2: object
) -> float | None:
    """Distance in km, or None when either endpoint lacks coordinates."""

    coords = [to_coordinate(v) for v in (lat1, lng1, lat2, lng2)]
    if any(c is None for c in coords):
        return None
    return haversine_km(*coords)

from math import atan2, cos, radians, sin, sqrt

from damage_assessor.core.ingestion.schemas import GeoPoint

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres on a spherical Earth."""
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(a), sqrt(1 - a))


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)

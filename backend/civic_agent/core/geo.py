import math
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0

# (lon, lat) in decimal degrees, GeoJSON order
LonLat = Tuple[float, float]


def haversine_km(a: LonLat, b: LonLat) -> float:
    """Great-circle distance in kilometers between two (lon, lat) pairs."""
    lon1, lat1 = a
    lon2, lat2 = b
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def is_valid_coordinate(lat, lon) -> bool:
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def distance_between(loc_a, loc_b) -> Optional[float]:
    """
    Distance in km between two Location objects, or None when either side
    is missing or has unusable coordinates.
    """
    if loc_a is None or loc_b is None:
        return None
    if not (loc_a.is_valid() and loc_b.is_valid()):
        return None
    return haversine_km(loc_a.coordinates, loc_b.coordinates)


def bounding_box(lat: float, lon: float, radius_m: float) -> Tuple[float, float, float, float]:
    """
    Returns (min_lat, max_lat, min_lon, max_lon) enclosing a circle of
    radius_m around the point. Used to pre-filter store queries; the exact
    radius check is done with haversine_km afterwards.
    """
    radius_km = radius_m / 1000.0
    dlat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-12:
        dlon = 180.0
    else:
        dlon = min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return (
        max(-90.0, lat - dlat),
        min(90.0, lat + dlat),
        max(-180.0, lon - dlon),
        min(180.0, lon + dlon),
    )

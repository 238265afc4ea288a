"""
Geofence validation service.
Uses Haversine formula to calculate distance between points.
"""
import math
from typing import Optional

from ..config import settings


EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points on Earth, in metres.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def within_site(
    point_lat: Optional[float],
    point_lng: Optional[float],
    site_lat: Optional[float],
    site_lng: Optional[float],
    radius_m: Optional[float] = None,
) -> Optional[bool]:
    """
    Whether a reported position lies within the radius of a site.

    Returns None when either the position or the site coordinates are missing.
    """
    if None in (point_lat, point_lng, site_lat, site_lng):
        return None
    if radius_m is None:
        radius_m = settings.geo_radius_m_default
    return haversine_distance(point_lat, point_lng, site_lat, site_lng) <= radius_m

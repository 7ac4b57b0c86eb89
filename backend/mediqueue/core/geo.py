"""
Geofence check for GPS-verified check-ins.
"""

import math
from typing import Tuple

EARTH_RADIUS_METERS = 6371e3


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates, in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def verify_location(
    latitude: float,
    longitude: float,
    clinic_latitude: float,
    clinic_longitude: float,
    radius_meters: float
) -> Tuple[bool, float]:
    """Return (inside geofence, distance in meters)."""
    distance = haversine_distance(latitude, longitude, clinic_latitude, clinic_longitude)
    return distance <= radius_meters, distance

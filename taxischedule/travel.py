"""
Travel-time estimation between two rides.

The time a taxi needs to get from the drop-off of one ride to the pick-up
of the next is estimated from the straight-line distance:

    minutes = haversine(a, b) * ROAD_CORRECTION_FACTOR / speed * 60

rounded up and never below MIN_TRAVEL_MINUTES.
"""

from __future__ import annotations

import math

from taxischedule.model import DEFAULT_AVERAGE_SPEED_KMH, GeoPoint


EARTH_RADIUS_KM = 6371.0

# Road distance / straight-line distance in a dense, hilly city.
ROAD_CORRECTION_FACTOR = 1.4

MIN_TRAVEL_MINUTES = 5


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance in km between two points on a spherical Earth.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def estimate_travel_minutes(
    a: GeoPoint,
    b: GeoPoint,
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
) -> int:
    """
    Estimate the whole minutes needed to drive from a to b.

    Raises ValueError if average_speed_kmh is not positive.
    """
    if average_speed_kmh <= 0:
        raise ValueError(f"average_speed_kmh must be > 0, got {average_speed_kmh}")

    road_km = haversine_km(a, b) * ROAD_CORRECTION_FACTOR
    minutes = road_km / average_speed_kmh * 60
    return max(MIN_TRAVEL_MINUTES, math.ceil(minutes))

"""
Geocoding and road routing through public HTTP services.

- addresses -> coordinates: api-adresse.data.gouv.fr (French address API)
- coordinates -> road distance/duration: OSRM demo server

Both services are free and need no API key. "Nothing found" is returned
as None; HTTP errors are raised by requests.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import requests

from taxischedule.model import GeoPoint


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

GEOCODE_URL = "https://api-adresse.data.gouv.fr/search/"
OSRM_ROUTE_URL = "https://router.project-osrm.org/route/v1/driving"

TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    duration_minutes: int

    def distance_text(self) -> str:
        return f"{self.distance_km:.1f} km"

    def duration_text(self) -> str:
        return f"{self.duration_minutes} min"


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def geocode_address(address: str) -> Optional[GeoPoint]:
    """
    Return the coordinates of the best match for address, or None.
    """
    query = (address or "").strip()
    if not query:
        return None

    resp = requests.get(GEOCODE_URL, params={"q": query, "limit": 1}, timeout=TIMEOUT_SECONDS)
    resp.raise_for_status()

    features = resp.json().get("features") or []
    if not features:
        logger.warning("No geocoding result for %r", query)
        return None

    # GeoJSON order is [longitude, latitude]
    lon, lat = features[0]["geometry"]["coordinates"][:2]
    return GeoPoint(latitude=float(lat), longitude=float(lon))


def route_between(origin: GeoPoint, destination: GeoPoint) -> Optional[RouteEstimate]:
    """
    Ask OSRM for the driving route between two points.

    Returns None when OSRM finds no route.
    """
    coords = f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
    resp = requests.get(f"{OSRM_ROUTE_URL}/{coords}", params={"overview": "false"}, timeout=TIMEOUT_SECONDS)
    resp.raise_for_status()

    data = resp.json()
    routes = data.get("routes") or []
    if data.get("code") != "Ok" or not routes:
        logger.warning("No route found between %s and %s (code=%s)", origin, destination, data.get("code"))
        return None

    route = routes[0]
    return RouteEstimate(
        distance_km=route["distance"] / 1000,
        duration_minutes=math.ceil(route["duration"] / 60),
    )


def estimate_route(
    origin_address: str,
    destination_address: str,
    origin_coords: Optional[GeoPoint] = None,
    destination_coords: Optional[GeoPoint] = None,
) -> Optional[RouteEstimate]:
    """
    Road distance and duration between two addresses.

    Known coordinates are used as-is; missing ones are geocoded first.
    """
    origin = origin_coords or geocode_address(origin_address)
    if origin is None:
        return None
    destination = destination_coords or geocode_address(destination_address)
    if destination is None:
        return None
    return route_between(origin, destination)

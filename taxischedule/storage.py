"""
Persistent planning file for the taxi.

This module manages the file:

    data/planning.json

with the schema {"rides": [ {...}, ... ]}. Each record uses the same field
names as taxischedule.model.Ride; coordinates are {"lat": .., "lng": ..}
("lon" is accepted as well).

The conflict engine itself never touches this file: the CLI loads a
snapshot, filters it and hands the rides to the engine.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from taxischedule.conflicts import parse_instant
from taxischedule.model import ACTIVE_STATUSES, RIDE_STATUSES, GeoPoint, Ride


logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 30
DEFAULT_DISTANCE_KM = 10
WINDOW_HOURS = 24


def _default_planning_path() -> Path:
    """
    Return the default path of planning.json inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "planning.json"


def _point_from_record(raw: Any) -> Optional[GeoPoint]:
    if not isinstance(raw, dict):
        return None
    lat = raw.get("lat", raw.get("latitude"))
    lng = raw.get("lng", raw.get("lon", raw.get("longitude")))
    if lat is None or lng is None:
        return None
    return GeoPoint(latitude=float(lat), longitude=float(lng))


def _point_to_record(point: Optional[GeoPoint]) -> Optional[dict[str, float]]:
    if point is None:
        return None
    return {"lat": point.latitude, "lng": point.longitude}


def ride_from_record(record: dict[str, Any]) -> Ride:
    """
    Build a Ride from a JSON record.

    Missing duration/distance fall back to 30 min / 10 km.
    Raises ValueError (or KeyError for a missing id/start_time) on bad records.
    """
    start = record["start_time"]
    if isinstance(start, datetime):
        start = start.isoformat()

    duration = record.get("duration_minutes")
    distance = record.get("distance_km")
    fare = record.get("fare_total")

    return Ride(
        id=str(record["id"]),
        origin=str(record.get("origin", "") or ""),
        destination=str(record.get("destination", "") or ""),
        start_time=str(start),
        duration_minutes=float(duration) if duration is not None else DEFAULT_DURATION_MINUTES,
        distance_km=float(distance) if distance is not None else DEFAULT_DISTANCE_KM,
        origin_coords=_point_from_record(record.get("origin_coords")),
        destination_coords=_point_from_record(record.get("destination_coords")),
        status=str(record.get("status", "pending") or "pending"),
        fare_total=float(fare) if fare is not None else None,
        tariff=str(record["tariff"]) if record.get("tariff") is not None else None,
    )


def ride_to_record(ride: Ride) -> dict[str, Any]:
    start = ride.start_time.isoformat() if isinstance(ride.start_time, datetime) else ride.start_time
    return {
        "id": ride.id,
        "origin": ride.origin,
        "destination": ride.destination,
        "start_time": start,
        "duration_minutes": ride.duration_minutes,
        "distance_km": ride.distance_km,
        "origin_coords": _point_to_record(ride.origin_coords),
        "destination_coords": _point_to_record(ride.destination_coords),
        "status": ride.status,
        "fare_total": ride.fare_total,
        "tariff": ride.tariff,
    }


def load_rides(path: Union[str, Path, None] = None) -> list[Ride]:
    """
    Load rides from planning.json.

    Returns an empty list if the file does not exist or is invalid.
    Single broken records are skipped with a warning.
    """
    planning_path = Path(path) if path is not None else _default_planning_path()

    # First run: no planning yet
    if not planning_path.exists():
        return []

    try:
        data = json.loads(planning_path.read_text(encoding="utf-8"))
        records = data.get("rides", [])
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        logger.warning("Ignoring unreadable planning file %s", planning_path)
        return []
    if not isinstance(records, list):
        return []

    rides: list[Ride] = []
    for record in records:
        try:
            rides.append(ride_from_record(record))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping invalid ride record %r: %s", record, exc)
    return rides


def save_rides(rides: Iterable[Ride], path: Union[str, Path, None] = None) -> None:
    """
    Save rides to planning.json, sorted by start time text then id.

    Creates parent directories if needed.
    """
    planning_path = Path(path) if path is not None else _default_planning_path()
    planning_path.parent.mkdir(parents=True, exist_ok=True)

    records = sorted((ride_to_record(r) for r in rides), key=lambda r: (str(r["start_time"]), r["id"]))
    payload = {"rides": records}

    planning_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def get_ride(ride_id: str, path: Union[str, Path, None] = None) -> Optional[Ride]:
    """Return the ride with this id, or None."""
    rid = str(ride_id).strip()
    for ride in load_rides(path):
        if ride.id == rid:
            return ride
    return None


def set_ride_status(ride_id: str, status: str, path: Union[str, Path, None] = None) -> bool:
    """
    Change the status of one ride (pending, confirmed or cancelled).

    Returns False if no ride has this id.
    Raises ValueError for an unknown status.
    """
    new_status = (status or "").strip().lower()
    if new_status not in RIDE_STATUSES:
        raise ValueError(f"Unknown status {status!r}, expected one of {', '.join(RIDE_STATUSES)}")

    rid = str(ride_id).strip()
    rides = load_rides(path)
    if not any(r.id == rid for r in rides):
        return False

    updated = [dataclasses.replace(r, status=new_status) if r.id == rid else r for r in rides]
    save_rides(updated, path)
    return True


def delete_rides(ids: Iterable[str], path: Union[str, Path, None] = None) -> int:
    """
    Remove rides by id. Returns the number of rides removed.

    The file is left untouched when nothing matches.
    """
    wanted = {str(x).strip() for x in ids if str(x).strip()}
    rides = load_rides(path)
    kept = [r for r in rides if r.id not in wanted]

    removed = len(rides) - len(kept)
    if removed:
        save_rides(kept, path)
    return removed


def active_rides(rides: Iterable[Ride]) -> list[Ride]:
    """Keep only rides that still occupy the taxi (pending or confirmed)."""
    return [r for r in rides if r.status in ACTIVE_STATUSES]


def rides_in_window(
    rides: Iterable[Ride],
    around: Union[str, datetime],
    hours: float = WINDOW_HOURS,
) -> list[Ride]:
    """
    Keep rides starting within +/- hours of around.

    Rides with an unparseable start time are kept so the conflict check
    reports them instead of silently ignoring them.
    """
    center = parse_instant(around)
    span = timedelta(hours=hours)

    out: list[Ride] = []
    for ride in rides:
        try:
            start = parse_instant(ride.start_time)
        except ValueError:
            out.append(ride)
            continue
        if center - span <= start <= center + span:
            out.append(ride)
    return out

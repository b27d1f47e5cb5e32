"""
Central data model definitions used across the project.

This module defines the canonical structure of rides, options and results so that:
- the travel estimator, the conflict engine, storage and the CLI share the same field names
- results can be inspected by callers without parsing messages
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


DEFAULT_SAFETY_BUFFER_MINUTES = 15
DEFAULT_AVERAGE_SPEED_KMH = 25.0

RIDE_STATUSES = ("pending", "confirmed", "cancelled")
ACTIVE_STATUSES = ("pending", "confirmed")


@dataclass(frozen=True)
class GeoPoint:
    """A geographic point in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class Ride:
    """
    Represents one taxi ride on the timeline of a single taxi.

    start_time is either an ISO 8601 string (as stored in the planning file)
    or a datetime. It is parsed by the conflict engine, so an unparseable
    value is reported there instead of being rejected here.
    """

    id: str
    origin: str
    destination: str
    start_time: Union[str, datetime]
    duration_minutes: float
    distance_km: float = 0.0
    origin_coords: Optional[GeoPoint] = None
    destination_coords: Optional[GeoPoint] = None
    status: str = "pending"
    fare_total: Optional[float] = None
    tariff: Optional[str] = None

    def __post_init__(self) -> None:
        # NaN compares False to everything, so test finiteness first
        if not math.isfinite(self.duration_minutes) or self.duration_minutes < 0:
            raise ValueError(f"Ride {self.id!r}: duration_minutes must be finite and >= 0, got {self.duration_minutes}")
        if not math.isfinite(self.distance_km) or self.distance_km < 0:
            raise ValueError(f"Ride {self.id!r}: distance_km must be finite and >= 0, got {self.distance_km}")

    def label(self) -> str:
        return f"{self.id} ({self.origin} → {self.destination})"


@dataclass(frozen=True)
class ConflictCheckOptions:
    """
    Tunables of the conflict engine.

    safety_buffer_minutes covers traffic variance, payment and unloading.
    inter_ride_travel_minutes_override bypasses the geometric estimate.
    average_speed_kmh is only used by the geometric estimate.
    """

    safety_buffer_minutes: float = DEFAULT_SAFETY_BUFFER_MINUTES
    inter_ride_travel_minutes_override: Optional[float] = None
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH


class ConflictStatus(str, Enum):
    NO_CONFLICT = "no_conflict"
    CONFLICT = "conflict"
    INVALID_INPUT = "invalid_input"


@dataclass(frozen=True)
class ConflictDetails:
    """Numbers behind a pairwise decision. All durations are in minutes."""

    first_ride_end: datetime
    second_ride_start: datetime
    travel_minutes: float
    buffer_minutes: float
    required_gap_minutes: float
    actual_gap_minutes: int
    shortfall_minutes: Optional[float] = None
    margin_minutes: Optional[float] = None


@dataclass(frozen=True)
class ConflictResult:
    status: ConflictStatus
    message: str
    details: Optional[ConflictDetails] = None
    blocking_ride: Optional[Ride] = None

    @property
    def has_conflict(self) -> bool:
        # invalid input fails closed
        return self.status is not ConflictStatus.NO_CONFLICT


@dataclass(frozen=True)
class SlotSuggestion:
    """
    Outcome of the alternative-slot search.

    verified is False when the search bound was exhausted and start_time is
    only the +24h fallback, which has not been checked against the planning.
    """

    start_time: datetime
    verified: bool
    attempts: int

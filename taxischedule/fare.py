# Fare estimation for a single ride; no external APIs.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime


PICKUP_CHARGE = 2.35
HOURLY_RATE = 34.60
MINIMUM_CHARGE = 8.00

# Share of the ride time billed at the hourly rate (red lights, traffic).
TRAFFIC_TIME_SHARE = 0.15

BULKY_BAG_SUPPLEMENT = 2.00
EXTRA_PASSENGER_SUPPLEMENT = 4.00
PASSENGERS_INCLUDED = 4

DAY_START_HOUR = 7
DAY_END_HOUR = 19

# (night_or_holiday, empty_return) -> (tariff name, price per km)
KM_TARIFFS = {
    (False, False): ("A", 1.11),
    (True, False): ("B", 1.44),
    (False, True): ("C", 2.22),
    (True, True): ("D", 2.88),
}


@dataclass(frozen=True)
class FareEstimate:
    tariff: str
    pickup_charge: float
    distance_cost: float
    traffic_cost: float
    supplements: float
    total: float


def is_night_rate(when: datetime) -> bool:
    """Night tariff applies from 19:00 to 07:00 and all day on Sundays."""
    return when.weekday() == 6 or not (DAY_START_HOUR <= when.hour < DAY_END_HOUR)


def estimate_fare(
    distance_km: float,
    duration_minutes: float,
    night_or_holiday: bool = False,
    empty_return: bool = False,
    bulky_bags: int = 0,
    passengers: int = 1,
) -> FareEstimate:
    """
    Estimate the fare of a ride.

    total = pickup + distance * km tariff + traffic time + supplements,
    never below MINIMUM_CHARGE.
    """
    if not (math.isfinite(distance_km) and math.isfinite(duration_minutes)):
        raise ValueError("distance_km and duration_minutes must be finite")
    if distance_km < 0 or duration_minutes < 0:
        raise ValueError("distance_km and duration_minutes must be >= 0")
    if bulky_bags < 0 or passengers < 0:
        raise ValueError("bulky_bags and passengers must be >= 0")

    tariff, per_km = KM_TARIFFS[(bool(night_or_holiday), bool(empty_return))]

    distance_cost = distance_km * per_km
    traffic_cost = duration_minutes / 60 * TRAFFIC_TIME_SHARE * HOURLY_RATE

    supplements = bulky_bags * BULKY_BAG_SUPPLEMENT
    if passengers > PASSENGERS_INCLUDED:
        supplements += (passengers - PASSENGERS_INCLUDED) * EXTRA_PASSENGER_SUPPLEMENT

    total = max(MINIMUM_CHARGE, PICKUP_CHARGE + distance_cost + traffic_cost + supplements)

    return FareEstimate(
        tariff=tariff,
        pickup_charge=PICKUP_CHARGE,
        distance_cost=round(distance_cost, 2),
        traffic_cost=round(traffic_cost, 2),
        supplements=round(supplements, 2),
        total=round(total, 2),
    )

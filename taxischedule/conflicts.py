"""
Conflict detection for a single taxi timeline.

Two rides A then B are compatible if the taxi can finish A, drive to the
start of B and still keep a safety buffer:

    end(A) + travel(A.destination -> B.origin) + buffer <= start(B)

Gaps are measured in whole minutes (floored), and an exactly equal gap is
accepted. A candidate ride is checked against every existing ride, not only
its neighbours, because a long ride can reach past the next one.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

from taxischedule.model import (
    ConflictCheckOptions,
    ConflictDetails,
    ConflictResult,
    ConflictStatus,
    Ride,
    SlotSuggestion,
)
from taxischedule.travel import estimate_travel_minutes


logger = logging.getLogger(__name__)

# Used when no override is given and coordinates are missing.
DEFAULT_INTER_RIDE_TRAVEL_MINUTES = 20

SLOT_STEP_MINUTES = 5
SLOT_MAX_ATTEMPTS = 288  # 24h of 5 minute steps
SLOT_FALLBACK = timedelta(hours=24)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MINUTE = timedelta(minutes=1)


def parse_instant(value: Union[str, datetime]) -> datetime:
    """
    Convert an ISO 8601 string (or datetime) into an aware datetime.

    A trailing 'Z' is accepted. Naive values are taken as UTC.
    Raises ValueError for anything that cannot be parsed.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        if not text:
            raise ValueError("Empty timestamp")
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _millis(dt: datetime) -> int:
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def _try_parse(value: Union[str, datetime]) -> Optional[datetime]:
    try:
        return parse_instant(value)
    except ValueError:
        return None


def _travel_minutes(ride_a: Ride, ride_b: Ride, options: ConflictCheckOptions) -> float:
    if options.inter_ride_travel_minutes_override is not None:
        return options.inter_ride_travel_minutes_override
    if ride_a.destination_coords is not None and ride_b.origin_coords is not None:
        return estimate_travel_minutes(
            ride_a.destination_coords,
            ride_b.origin_coords,
            options.average_speed_kmh,
        )
    return DEFAULT_INTER_RIDE_TRAVEL_MINUTES


def check_pairwise_conflict(
    ride_a: Ride,
    ride_b: Ride,
    options: Optional[ConflictCheckOptions] = None,
) -> ConflictResult:
    """
    Check that ride_b can follow ride_a (ride_a must not start after ride_b).

    Unparseable start times and out-of-order rides are reported with status
    INVALID_INPUT, which counts as a conflict.
    """
    if ride_a is None or ride_b is None:
        raise TypeError("check_pairwise_conflict() needs two rides")
    opts = options or ConflictCheckOptions()

    start_a = _try_parse(ride_a.start_time)
    start_b = _try_parse(ride_b.start_time)
    if start_a is None or start_b is None:
        bad = ride_a if start_a is None else ride_b
        return ConflictResult(
            status=ConflictStatus.INVALID_INPUT,
            message=f"Invalid start time {bad.start_time!r} for ride {bad.id}",
        )

    if start_b < start_a:
        return ConflictResult(
            status=ConflictStatus.INVALID_INPUT,
            message=(
                f"Ride {ride_b.id} starts before ride {ride_a.id}: "
                "rides must be given in chronological order"
            ),
        )

    end_a = start_a + timedelta(minutes=ride_a.duration_minutes)
    travel = _travel_minutes(ride_a, ride_b, opts)
    buffer = opts.safety_buffer_minutes

    required = travel + buffer
    actual = math.floor((start_b - end_a) / _MINUTE)

    if actual < required:
        shortfall = required - actual
        return ConflictResult(
            status=ConflictStatus.CONFLICT,
            message=(
                f"Conflict: {shortfall} minute(s) missing. "
                f"Available: {actual} min, required: {required} min "
                f"(travel between rides: {travel} min + buffer: {buffer} min)"
            ),
            details=ConflictDetails(
                first_ride_end=end_a,
                second_ride_start=start_b,
                travel_minutes=travel,
                buffer_minutes=buffer,
                required_gap_minutes=required,
                actual_gap_minutes=actual,
                shortfall_minutes=shortfall,
            ),
        )

    margin = actual - required
    return ConflictResult(
        status=ConflictStatus.NO_CONFLICT,
        message=f"No conflict: {margin} minute(s) of margin. Available: {actual} min, required: {required} min",
        details=ConflictDetails(
            first_ride_end=end_a,
            second_ride_start=start_b,
            travel_minutes=travel,
            buffer_minutes=buffer,
            required_gap_minutes=required,
            actual_gap_minutes=actual,
            margin_minutes=margin,
        ),
    )


def _sort_key(ride: Ride) -> tuple[int, int]:
    # unparseable start times go first so they are reported, not skipped
    dt = _try_parse(ride.start_time)
    if dt is None:
        return (0, 0)
    return (1, _millis(dt))


def check_against_planning(
    candidate: Ride,
    existing: Iterable[Ride],
    options: Optional[ConflictCheckOptions] = None,
) -> ConflictResult:
    """
    Check a candidate ride against every ride already planned.

    Returns the first conflict found in chronological order, with the
    blocking ride attached. Rides sharing the exact same start instant as
    the candidate always conflict (shortfall of 1 minute).

    When several existing rides share a start time, they are checked in
    their input order.
    """
    if candidate is None:
        raise TypeError("check_against_planning() needs a candidate ride")
    if existing is None:
        raise TypeError("check_against_planning() needs the existing rides (use [] for none)")

    rides = list(existing)
    if not rides:
        return ConflictResult(
            status=ConflictStatus.NO_CONFLICT,
            message="No existing ride, no conflict possible",
        )

    candidate_start = _try_parse(candidate.start_time)

    for ride in sorted(rides, key=_sort_key):
        ride_start = _try_parse(ride.start_time)

        if ride_start is not None and candidate_start is not None:
            if _millis(ride_start) == _millis(candidate_start):
                return ConflictResult(
                    status=ConflictStatus.CONFLICT,
                    message=(
                        f"Conflict: same start time as ride {ride.label()}. "
                        "Two rides cannot start at the same moment."
                    ),
                    details=ConflictDetails(
                        first_ride_end=ride_start,
                        second_ride_start=candidate_start,
                        travel_minutes=0,
                        buffer_minutes=0,
                        required_gap_minutes=1,
                        actual_gap_minutes=0,
                        shortfall_minutes=1,
                    ),
                    blocking_ride=ride,
                )

        if ride_start is not None and candidate_start is not None and _millis(ride_start) < _millis(candidate_start):
            result = check_pairwise_conflict(ride, candidate, options)
        else:
            result = check_pairwise_conflict(candidate, ride, options)

        if result.has_conflict:
            return dataclasses.replace(
                result,
                message=f"Conflict with ride {ride.label()}: {result.message}",
                blocking_ride=ride,
            )

    return ConflictResult(
        status=ConflictStatus.NO_CONFLICT,
        message="No conflict with existing rides",
    )


def find_next_available_slot(
    conflicting: Ride,
    existing: Iterable[Ride],
    options: Optional[ConflictCheckOptions] = None,
) -> SlotSuggestion:
    """
    Search forward in 5 minute steps for the first start time without conflict.

    The requested time itself is never re-tested. After SLOT_MAX_ATTEMPTS
    steps the requested time + 24h is returned with verified=False.
    Raises ValueError if the requested start time cannot be parsed.
    """
    if conflicting is None:
        raise TypeError("find_next_available_slot() needs a ride")
    if existing is None:
        raise TypeError("find_next_available_slot() needs the existing rides (use [] for none)")

    requested = parse_instant(conflicting.start_time)
    rides = list(existing)
    step = timedelta(minutes=SLOT_STEP_MINUTES)
    proposed = requested + step

    logger.info("Searching alternative slot for ride %s requested at %s", conflicting.id, requested.isoformat())

    for attempt in range(1, SLOT_MAX_ATTEMPTS + 1):
        trial = dataclasses.replace(conflicting, start_time=proposed)
        result = check_against_planning(trial, rides, options)

        if attempt <= 10:
            logger.debug(
                "Attempt %d: %s -> %s",
                attempt,
                proposed.isoformat(),
                "conflict" if result.has_conflict else "ok",
            )

        if not result.has_conflict:
            logger.info("Slot found after %d attempt(s): %s", attempt, proposed.isoformat())
            return SlotSuggestion(start_time=proposed, verified=True, attempts=attempt)

        proposed += step

    fallback = requested + SLOT_FALLBACK
    logger.warning("No slot found within 24h of %s, falling back to %s", requested.isoformat(), fallback.isoformat())
    return SlotSuggestion(start_time=fallback, verified=False, attempts=SLOT_MAX_ATTEMPTS)

"""
Scheduling-conflict engine for a single taxi.

The public operations are re-exported here for callers such as a booking
request handler.
"""

from taxischedule.conflicts import check_against_planning, check_pairwise_conflict, find_next_available_slot
from taxischedule.model import (
    ConflictCheckOptions,
    ConflictDetails,
    ConflictResult,
    ConflictStatus,
    GeoPoint,
    Ride,
    SlotSuggestion,
)
from taxischedule.travel import estimate_travel_minutes

__all__ = [
    "ConflictCheckOptions",
    "ConflictDetails",
    "ConflictResult",
    "ConflictStatus",
    "GeoPoint",
    "Ride",
    "SlotSuggestion",
    "check_against_planning",
    "check_pairwise_conflict",
    "estimate_travel_minutes",
    "find_next_available_slot",
]

"""
CLI (Command Line Interface).

Quick terminal commands for dispatchers and for testing, e.g.:

    taxischedule travel 43.30 5.38 43.29 5.37
    taxischedule fare --distance 12 --duration 25 --night
    taxischedule check --start 2026-01-14T10:00:00Z --duration 20 --from A --to B
    taxischedule book  --start 2026-01-14T10:00:00Z --duration 20 --from A --to B
    taxischedule list
    taxischedule show r1 / confirm r1 / cancel r1 / delete r1 r2
    taxischedule route "Gare Saint-Charles" "Vieux-Port"

Note:
- check/book compare the new ride with the active rides of the planning file
  that start within 24h of it
- book only writes the ride when there is no conflict, together with its fare
- cancelled rides no longer block new bookings
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import uuid
from pathlib import Path
from typing import Optional

import requests
from rich import box
from rich.console import Console
from rich.table import Table

from taxischedule.conflicts import (
    check_against_planning,
    find_next_available_slot,
    parse_instant,
)
from taxischedule.fare import estimate_fare, is_night_rate
from taxischedule.model import (
    DEFAULT_AVERAGE_SPEED_KMH,
    DEFAULT_SAFETY_BUFFER_MINUTES,
    ConflictCheckOptions,
    GeoPoint,
    Ride,
)
from taxischedule.routing import estimate_route
from taxischedule.storage import (
    active_rides,
    delete_rides,
    get_ride,
    load_rides,
    rides_in_window,
    save_rides,
    set_ride_status,
)
from taxischedule.travel import estimate_travel_minutes


console = Console()


def _point(text: str) -> GeoPoint:
    """
    argparse type for 'LAT,LNG'.
    """
    parts = [p.strip() for p in (text or "").split(",")]
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"Expected LAT,LNG, got {text!r}")
    try:
        return GeoPoint(latitude=float(parts[0]), longitude=float(parts[1]))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected LAT,LNG, got {text!r}") from None


def _options(args: argparse.Namespace) -> ConflictCheckOptions:
    return ConflictCheckOptions(
        safety_buffer_minutes=args.buffer,
        inter_ride_travel_minutes_override=args.travel,
        average_speed_kmh=args.speed,
    )


def _cmd_travel(args: argparse.Namespace) -> int:
    """
    Print the estimated travel minutes between two points.
    """
    if args.speed <= 0:
        console.print("Speed must be greater than 0.")
        return 1

    a = GeoPoint(args.lat1, args.lon1)
    b = GeoPoint(args.lat2, args.lon2)
    console.print(f"{estimate_travel_minutes(a, b, args.speed)} min")
    return 0


def _cmd_fare(args: argparse.Namespace) -> int:
    """
    Print the fare estimate of a ride.

    --at derives the night tariff from the pickup time; --night forces it.
    """
    night = args.night
    if args.at:
        try:
            night = night or is_night_rate(parse_instant(args.at))
        except ValueError:
            console.print(f"Invalid pickup time: {args.at!r}")
            return 1

    try:
        est = estimate_fare(
            distance_km=args.distance,
            duration_minutes=args.duration,
            night_or_holiday=night,
            empty_return=args.empty_return,
            bulky_bags=args.bulky_bags,
            passengers=args.passengers,
        )
    except ValueError as exc:
        console.print(f"Invalid fare input: {exc}")
        return 1

    table = Table(title=f"Tariff {est.tariff}", box=box.SIMPLE)
    table.add_column("Item")
    table.add_column("EUR", justify="right")
    table.add_row("Pickup", f"{est.pickup_charge:.2f}")
    table.add_row("Distance", f"{est.distance_cost:.2f}")
    table.add_row("Traffic", f"{est.traffic_cost:.2f}")
    table.add_row("Supplements", f"{est.supplements:.2f}")
    table.add_row("Total", f"{est.total:.2f}")
    console.print(table)
    return 0


def _candidate(args: argparse.Namespace) -> Optional[Ride]:
    """
    Build the requested ride from CLI arguments, or print why it cannot be built.
    """
    try:
        parse_instant(args.start)
    except ValueError:
        console.print(f"Invalid start time: {args.start!r} (expected ISO 8601, e.g. 2026-01-14T10:00:00Z)")
        return None

    try:
        return Ride(
            id=(args.id or "").strip() or uuid.uuid4().hex[:8],
            origin=args.origin,
            destination=args.destination,
            start_time=args.start,
            duration_minutes=args.duration,
            distance_km=args.distance,
            origin_coords=args.origin_coords,
            destination_coords=args.destination_coords,
        )
    except ValueError as exc:
        console.print(f"Invalid ride: {exc}")
        return None


def _cmd_check(args: argparse.Namespace, book: bool = False) -> int:
    """
    Check a requested ride against the planning; with book=True also save it.
    """
    if args.speed <= 0:
        console.print("Speed must be greater than 0.")
        return 1

    candidate = _candidate(args)
    if candidate is None:
        return 1

    all_rides = load_rides(args.planning)
    existing = rides_in_window(active_rides(all_rides), candidate.start_time)
    options = _options(args)

    result = check_against_planning(candidate, existing, options)
    console.print(result.message)

    if result.has_conflict:
        slot = find_next_available_slot(candidate, existing, options)
        if slot.verified:
            console.print(f"Next available slot: {slot.start_time.isoformat()}")
        else:
            console.print(f"No free slot within 24h. Fallback (not verified): {slot.start_time.isoformat()}")
        return 1

    if book:
        try:
            est = estimate_fare(
                distance_km=candidate.distance_km,
                duration_minutes=candidate.duration_minutes,
                night_or_holiday=is_night_rate(parse_instant(candidate.start_time)),
                empty_return=args.empty_return,
                bulky_bags=args.bulky_bags,
                passengers=args.passengers,
            )
        except ValueError as exc:
            console.print(f"Invalid fare input: {exc}")
            return 1
        booked = dataclasses.replace(candidate, fare_total=est.total, tariff=est.tariff)
        save_rides([*all_rides, booked], args.planning)
        console.print(f"Booked: {booked.label()} at {booked.start_time} (tariff {est.tariff}, {est.total:.2f} EUR)")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    """
    Print all rides of the planning file.
    """
    rides = load_rides(args.planning)
    if not rides:
        console.print("No rides planned.")
        return 0

    table = Table(box=box.SIMPLE)
    for col in ("ID", "Start", "Duration", "From", "To", "Status"):
        table.add_column(col)
    for r in sorted(rides, key=lambda x: str(x.start_time)):
        table.add_row(r.id, str(r.start_time), f"{r.duration_minutes:g} min", r.origin, r.destination, r.status)
    console.print(table)
    return 0


def _cmd_route(args: argparse.Namespace) -> int:
    """
    Print road distance and duration between two addresses.
    """
    try:
        route = estimate_route(args.origin, args.destination)
    except requests.RequestException as exc:
        console.print(f"Routing service unavailable: {exc}")
        return 1

    if route is None:
        console.print("No route found.")
        return 1
    console.print(f"{route.distance_text()} | {route.duration_text()}")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    """
    Print one ride of the planning file.
    """
    ride = get_ride(args.ride_id, args.planning)
    if ride is None:
        console.print(f"Unknown ride: {args.ride_id}")
        return 1

    table = Table(title=f"Ride {ride.id}", box=box.SIMPLE, show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Start", str(ride.start_time))
    table.add_row("From", ride.origin)
    table.add_row("To", ride.destination)
    table.add_row("Duration", f"{ride.duration_minutes:g} min")
    table.add_row("Distance", f"{ride.distance_km:g} km")
    table.add_row("Status", ride.status)
    if ride.fare_total is not None:
        table.add_row("Fare", f"{ride.fare_total:.2f} EUR (tariff {ride.tariff or '?'})")
    console.print(table)
    return 0


def _cmd_status(args: argparse.Namespace, status: str) -> int:
    """
    Set the status of a ride (confirm/cancel).
    """
    if not set_ride_status(args.ride_id, status, args.planning):
        console.print(f"Unknown ride: {args.ride_id}")
        return 1
    console.print(f"Ride {args.ride_id.strip()}: {status}")
    return 0


def _cmd_delete(args: argparse.Namespace) -> int:
    """
    Remove rides from the planning file.
    """
    removed = delete_rides(args.ride_ids, args.planning)
    if not removed:
        console.print("No matching ride.")
        return 1
    console.print(f"Deleted {removed} ride(s)")
    return 0


def _add_fare_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--empty-return", action="store_true", help="Taxi returns empty")
    p.add_argument("--bulky-bags", type=int, default=0, help="Number of bulky bags")
    p.add_argument("--passengers", type=int, default=1, help="Number of passengers")


def _add_ride_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--start", required=True, help="Start time, ISO 8601 (e.g. 2026-01-14T10:00:00Z)")
    p.add_argument("--duration", type=float, required=True, help="Ride duration in minutes")
    p.add_argument("--from", dest="origin", required=True, help="Pickup address")
    p.add_argument("--to", dest="destination", required=True, help="Drop-off address")
    p.add_argument("--distance", type=float, default=0.0, help="Ride distance in km")
    p.add_argument("--origin", dest="origin_coords", type=_point, default=None, help="Pickup LAT,LNG")
    p.add_argument("--destination", dest="destination_coords", type=_point, default=None, help="Drop-off LAT,LNG")
    p.add_argument("--id", type=str, default=None, help="Ride id (generated if omitted)")
    p.add_argument("--planning", type=Path, default=None, help="Planning JSON file")
    p.add_argument("--buffer", type=int, default=DEFAULT_SAFETY_BUFFER_MINUTES, help="Safety buffer in minutes")
    p.add_argument("--speed", type=float, default=DEFAULT_AVERAGE_SPEED_KMH, help="Average speed in km/h")
    p.add_argument("--travel", type=int, default=None, help="Fixed travel minutes between rides")


def _add_planning_argument(p: argparse.ArgumentParser) -> None:
    p.add_argument("--planning", type=Path, default=None, help="Planning JSON file")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="taxischedule", description="Taxi scheduling CLI")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logs")
    sub = parser.add_subparsers(dest="command", required=True)

    p_travel = sub.add_parser("travel", help="Estimate travel minutes between two points")
    for name in ("lat1", "lon1", "lat2", "lon2"):
        p_travel.add_argument(name, type=float)
    p_travel.add_argument("--speed", type=float, default=DEFAULT_AVERAGE_SPEED_KMH, help="Average speed in km/h")

    p_fare = sub.add_parser("fare", help="Estimate the fare of a ride")
    p_fare.add_argument("--distance", type=float, required=True, help="Distance in km")
    p_fare.add_argument("--duration", type=float, required=True, help="Duration in minutes")
    p_fare.add_argument("--night", action="store_true", help="Night, Sunday or public holiday")
    p_fare.add_argument("--at", type=str, default=None, help="Pickup time, ISO 8601 (sets the night tariff)")
    _add_fare_arguments(p_fare)

    p_check = sub.add_parser("check", help="Check a ride against the planning")
    _add_ride_arguments(p_check)

    p_book = sub.add_parser("book", help="Check a ride, price it and add it to the planning")
    _add_ride_arguments(p_book)
    _add_fare_arguments(p_book)

    p_list = sub.add_parser("list", help="List planned rides")
    _add_planning_argument(p_list)

    p_show = sub.add_parser("show", help="Show one ride")
    p_show.add_argument("ride_id", type=str)
    _add_planning_argument(p_show)

    p_confirm = sub.add_parser("confirm", help="Mark a ride as confirmed")
    p_confirm.add_argument("ride_id", type=str)
    _add_planning_argument(p_confirm)

    p_cancel = sub.add_parser("cancel", help="Mark a ride as cancelled (frees its slot)")
    p_cancel.add_argument("ride_id", type=str)
    _add_planning_argument(p_cancel)

    p_delete = sub.add_parser("delete", help="Remove rides from the planning")
    p_delete.add_argument("ride_ids", type=str, nargs="+")
    _add_planning_argument(p_delete)

    p_route = sub.add_parser("route", help="Road distance/duration between two addresses")
    p_route.add_argument("origin", type=str)
    p_route.add_argument("destination", type=str)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "travel":
        raise SystemExit(_cmd_travel(args))
    if args.command == "fare":
        raise SystemExit(_cmd_fare(args))
    if args.command == "check":
        raise SystemExit(_cmd_check(args))
    if args.command == "book":
        raise SystemExit(_cmd_check(args, book=True))
    if args.command == "list":
        raise SystemExit(_cmd_list(args))
    if args.command == "show":
        raise SystemExit(_cmd_show(args))
    if args.command == "confirm":
        raise SystemExit(_cmd_status(args, "confirmed"))
    if args.command == "cancel":
        raise SystemExit(_cmd_status(args, "cancelled"))
    if args.command == "delete":
        raise SystemExit(_cmd_delete(args))
    if args.command == "route":
        raise SystemExit(_cmd_route(args))

    raise SystemExit(2)

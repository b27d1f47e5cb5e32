"""
Tests for the geocoding/routing client.

HTTP is mocked; no network access happens here.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests

from taxischedule.model import GeoPoint
from taxischedule.routing import (
    GEOCODE_URL,
    RouteEstimate,
    estimate_route,
    geocode_address,
    route_between,
)


def _response(payload: dict) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


GEOCODE_HIT = {"features": [{"geometry": {"type": "Point", "coordinates": [5.3806, 43.3031]}}]}
OSRM_OK = {"code": "Ok", "routes": [{"distance": 3520.0, "duration": 601.0}]}


class TestGeocode(unittest.TestCase):
    @patch("taxischedule.routing.requests.get")
    def test_first_feature_is_used(self, get: MagicMock) -> None:
        get.return_value = _response(GEOCODE_HIT)

        point = geocode_address("Gare Saint-Charles, Marseille")

        self.assertEqual(point, GeoPoint(latitude=43.3031, longitude=5.3806))
        args, kwargs = get.call_args
        self.assertEqual(args[0], GEOCODE_URL)
        self.assertEqual(kwargs["params"], {"q": "Gare Saint-Charles, Marseille", "limit": 1})

    @patch("taxischedule.routing.requests.get")
    def test_no_feature_returns_none(self, get: MagicMock) -> None:
        get.return_value = _response({"features": []})
        self.assertIsNone(geocode_address("nowhere"))

    @patch("taxischedule.routing.requests.get")
    def test_blank_address_skips_request(self, get: MagicMock) -> None:
        self.assertIsNone(geocode_address("   "))
        get.assert_not_called()

    @patch("taxischedule.routing.requests.get")
    def test_http_error_propagates(self, get: MagicMock) -> None:
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError("503")
        get.return_value = resp
        with self.assertRaises(requests.HTTPError):
            geocode_address("Vieux-Port")


class TestRoute(unittest.TestCase):
    @patch("taxischedule.routing.requests.get")
    def test_route_converts_units(self, get: MagicMock) -> None:
        get.return_value = _response(OSRM_OK)

        route = route_between(GeoPoint(43.3031, 5.3806), GeoPoint(43.2951, 5.3744))

        self.assertEqual(route, RouteEstimate(distance_km=3.52, duration_minutes=11))
        assert route is not None
        self.assertEqual(route.distance_text(), "3.5 km")
        self.assertEqual(route.duration_text(), "11 min")
        # OSRM wants lon,lat pairs
        self.assertTrue(get.call_args[0][0].endswith("/5.3806,43.3031;5.3744,43.2951"))

    @patch("taxischedule.routing.requests.get")
    def test_no_route_returns_none(self, get: MagicMock) -> None:
        get.return_value = _response({"code": "NoRoute", "routes": []})
        self.assertIsNone(route_between(GeoPoint(0, 0), GeoPoint(1, 1)))

    @patch("taxischedule.routing.requests.get")
    def test_estimate_route_geocodes_missing_points(self, get: MagicMock) -> None:
        get.side_effect = [_response(GEOCODE_HIT), _response(OSRM_OK)]

        route = estimate_route(
            "Gare Saint-Charles",
            "Vieux-Port",
            destination_coords=GeoPoint(43.2951, 5.3744),
        )

        self.assertIsNotNone(route)
        self.assertEqual(get.call_count, 2)

    @patch("taxischedule.routing.requests.get")
    def test_estimate_route_stops_when_geocoding_fails(self, get: MagicMock) -> None:
        get.return_value = _response({"features": []})
        self.assertIsNone(estimate_route("nowhere", "Vieux-Port"))
        self.assertEqual(get.call_count, 1)


if __name__ == "__main__":
    unittest.main()

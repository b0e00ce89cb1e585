"""
Unit tests for wander_travel/api/places/providers.py
"""
from unittest.mock import MagicMock

import pytest
import requests

from conftest import run

from wander_travel.api.models import Tier
from wander_travel.api.places.providers import GoogleMapsProvider, MapboxProvider


class TestGoogleMapsProvider:

    def test_search_nearby_maps_results(self):
        client = MagicMock()
        client.places_nearby.return_value = {"results": [
            {"place_id": "g1", "name": "Taverna", "vicinity": "Rhodes Town", "rating": 4.5,
             "price_level": 2, "types": ["restaurant", "food"],
             "geometry": {"location": {"lat": 36.44, "lng": 28.22}}},
            {"place_id": "g2", "name": "Second", "geometry": {"location": {"lat": 36.45, "lng": 28.23}}},
        ]}
        provider = GoogleMapsProvider("key", client=client)

        places = run(provider.search_nearby(36.44, 28.22, 1000, "restaurant", limit=1))

        client.places_nearby.assert_called_once_with(location=(36.44, 28.22), radius=1000, type="restaurant")
        assert len(places) == 1
        assert places[0].id == "g1"
        assert places[0].address == "Rhodes Town"
        assert places[0].tier is Tier.BASIC

    def test_route(self):
        client = MagicMock()
        client.directions.return_value = [
            {"legs": [{"distance": {"value": 3200}, "duration": {"value": 420}}]}
        ]
        provider = GoogleMapsProvider("key", client=client)

        result = run(provider.route("36.44,28.22", "Lindos", "cycling"))

        client.directions.assert_called_once_with("36.44,28.22", "Lindos", mode="bicycling")
        assert result.distance_meters == 3200
        assert result.duration_minutes == 7

    def test_no_route(self):
        client = MagicMock()
        client.directions.return_value = []
        assert run(GoogleMapsProvider("key", client=client).route("a", "b")) is None


class TestMapboxProvider:

    def _response(self, payload):
        resp = MagicMock()
        resp.json.return_value = payload
        return resp

    def test_search_filters_by_radius(self):
        session = MagicMock()
        session.get.return_value = self._response({"features": [
            {"id": "poi.1", "text": "Near Cafe", "place_name": "Near Cafe, Rhodes", "center": [28.2205, 36.4405]},
            {"id": "poi.2", "text": "Far Cafe", "place_name": "Far Cafe, Lindos", "center": [28.088, 36.091]},
        ]})
        provider = MapboxProvider("token", session=session)

        places = run(provider.search_nearby(36.44, 28.22, 1000, "cafe"))

        assert [p.id for p in places] == ["poi.1"]
        assert places[0].tier is Tier.EMERGENCY
        params = session.get.call_args.kwargs["params"]
        assert params["proximity"] == "28.22,36.44"
        assert params["types"] == "poi"
        assert params["access_token"] == "token"

    def test_route_with_coordinate_tokens(self):
        session = MagicMock()
        session.get.return_value = self._response({"routes": [{"distance": 5000.0, "duration": 600.0}]})
        provider = MapboxProvider("token", session=session)

        result = run(provider.route("36.44,28.22", "36.09,28.08", "walking"))

        url = session.get.call_args.args[0]
        assert url.endswith("/walking/28.22,36.44;28.08,36.09")
        assert result.duration_minutes == 10

    def test_route_geocodes_addresses(self):
        session = MagicMock()
        session.get.side_effect = [
            self._response({"features": [{"center": [28.08, 36.09]}]}),
            self._response({"routes": [{"distance": 1.0, "duration": 60.0}]}),
        ]
        provider = MapboxProvider("token", session=session)

        assert run(provider.route("36.44,28.22", "Lindos", "driving")).distance_meters == 1.0
        assert session.get.call_count == 2

    def test_http_error_propagates(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with pytest.raises(requests.HTTPError):
            run(MapboxProvider("token", session=session).search_nearby(36.44, 28.22, 1000, "cafe"))

"""
Unit tests for wander_travel/api/models.py
"""
import pytest

from wander_travel.api.models import (
    DEFAULT_CATEGORIES,
    Coordinates,
    Place,
    PlanningContext,
    SearchCriteria,
    Stop,
    Tier,
    TravelEstimate,
    TravelLeg,
    stop_validation_error,
)


def valid_record(**overrides):
    data = {"name": "Elli Beach", "category": "beach", "location": {"address": "Rhodes"}}
    data.update(overrides)
    return data


class TestStopValidation:

    def test_minimal_record_is_valid(self):
        assert stop_validation_error(valid_record()) is None

    @pytest.mark.parametrize("overrides, reason", [
        ({"name": ""}, "missing name"),
        ({"category": None}, "missing category"),
        ({"location": "Rhodes"}, "missing location"),
        ({"location": {"address": " "}}, "missing location.address"),
        ({"details": []}, "details is not an object"),
        ({"details": {"rating": [4]}}, "details.rating must be a number or string"),
        ({"tips": "go early"}, "tips must be a list"),
    ])
    def test_invalid_records(self, overrides, reason):
        assert stop_validation_error(valid_record(**overrides)) == reason

    def test_boolean_coordinates_are_not_numeric(self):
        data = valid_record(location={"address": "X", "coordinates": {"lat": True, "lng": 28.2}})
        assert stop_validation_error(data) == "location.coordinates lat/lng must be numeric"

    def test_non_dict_is_invalid(self):
        assert stop_validation_error(["a"]) == "record is not an object"


class TestStop:

    def test_from_dict_aliases(self):
        stop = Stop.from_dict({"name": "A", "type": "bar", "location": {"address": "X"}, "id": "p1"})
        assert stop.category == "bar"
        assert stop.place_id == "p1"
        assert stop.coordinates is None
        assert stop.route_token() == "X"

    def test_route_token_prefers_coordinates(self):
        stop = Stop.from_dict(valid_record(location={"address": "X", "coordinates": {"lat": 36.4, "lng": 28.2}}))
        assert stop.route_token() == "36.4,28.2"

    def test_to_dict_is_camel_case(self):
        stop = Stop.from_dict(valid_record(nearbyAttractions=["B"], details={"openingHours": "9-5"}))
        data = stop.to_dict()
        assert data["nearbyAttractions"] == ["B"]
        assert data["details"] == {"openingHours": "9-5"}
        assert "travel" not in data


class TestTravelLeg:

    def test_completeness(self):
        assert TravelLeg(1200, 4).is_complete
        assert not TravelLeg(None, 4).is_complete
        assert not TravelLeg(0, 0).is_complete

    def test_from_dict_is_lenient(self):
        leg = TravelLeg.from_dict({"distanceMeters": "1500", "durationMinutes": "abc"})
        assert leg.distance_meters == 1500.0
        assert leg.duration_minutes is None


class TestCoordinates:

    def test_parse(self):
        assert Coordinates.parse("36.4, 28.2") == Coordinates(36.4, 28.2)
        assert Coordinates.parse("Rhodes Old Town") is None
        assert Coordinates.parse("Ippoton, Rhodes") is None
        assert Coordinates.parse("136.4,28.2") is None

    def test_rounded(self):
        assert Coordinates(36.12345678, 28.98765432).rounded() == Coordinates(36.123457, 28.987654)


class TestPlace:

    def test_to_stop(self):
        place = Place(
            id="r1", name="Taverna", category="restaurant", latitude=36.4450001, longitude=28.2270001,
            rating=4.6, price_level=2, local_tips=["Ask for the special"],
            contextual_tips=["Highly rated by visitors"],
            spatial_context={"adjacent": [{"name": "Mandala Cafe", "type": "restaurant", "distance": 140}]},
        )
        stop = place.to_stop(fallback_address="Rhodes, Greece")

        assert stop.place_id == "r1"
        assert stop.location.address == "Rhodes, Greece"
        assert stop.location.coordinates == Coordinates(36.445, 28.227)
        assert stop.details.price_range == "€€"
        assert stop.tips == ["Ask for the special", "Highly rated by visitors"]
        assert stop.nearby_attractions == ["Mandala Cafe"]

    def test_to_dict_includes_tier(self):
        assert Place(id="x", name="X", category="bar", tier=Tier.BASIC).to_dict()["tier"] == "basic"


class TestSearchCriteria:

    def test_defaults_are_positive_and_broad(self):
        criteria = SearchCriteria(latitude=None, longitude=None, radius_meters=0, limit=-3)
        assert criteria.radius_meters == 5000
        assert criteria.limit == 15
        assert criteria.categories == DEFAULT_CATEGORIES


class TestMisc:

    def test_duration_minutes_rounds(self):
        assert TravelEstimate(1000, 400).duration_minutes == 7

    def test_exclusion_ids(self):
        context = PlanningContext(selected=[
            Stop.from_dict({"name": "A", "category": "bar", "location": {"address": "X"}, "placeId": "p1"}),
            Stop.from_dict({"name": "B", "category": "bar", "location": {"address": "Y"}}),
        ])
        assert context.exclusion_ids() == ["p1"]

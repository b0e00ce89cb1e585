"""
Unit tests for wander_travel/api/agent/function_handler.py
"""
from unittest.mock import AsyncMock

from conftest import BASIC, OLD_TOWN, FakeProvider, estimate, run

from wander_travel.api.agent.function_handler import FunctionHandler
from wander_travel.api.places.gateway import PlaceLookupGateway


def tool_names(definitions):
    return [d["function"]["name"] for d in definitions]


class TestDefinitions:

    def test_contextual_tool_only_with_store(self, store):
        without = FunctionHandler(PlaceLookupGateway())
        with_store = FunctionHandler(PlaceLookupGateway(knowledge_store=store))

        assert tool_names(run(without.function_definitions())) == ["findNearby", "travelTime"]
        assert tool_names(run(with_store.function_definitions())) == [
            "findNearby", "travelTime", "contextualRecommendations",
        ]


class TestHandleFunctionCall:

    def test_find_nearby(self, store):
        handler = FunctionHandler(PlaceLookupGateway(knowledge_store=store))

        result = run(handler.handle_function_call(
            "call_1", "findNearby", {"lat": OLD_TOWN.lat, "lng": OLD_TOWN.lng, "radius": 300},
        ))

        assert result["success"] is True
        assert result["tier"] == "enhanced"
        assert [p["name"] for p in result["places"]] == ["Taverna Kostas", "Mandala Cafe"]
        assert handler.calls == ["findNearby"]

    def test_find_nearby_accepts_type_alias(self):
        basic = FakeProvider(BASIC, [])
        handler = FunctionHandler(PlaceLookupGateway(basic=basic))

        run(handler.handle_function_call("c", "findNearby", {"lat": 36.4, "lng": 28.2, "type": "bar"}))

        assert basic.search_calls[0][3] == "bar"

    def test_travel_time(self):
        gateway = PlaceLookupGateway(basic=FakeProvider(BASIC, estimate=estimate(2500, 330)))
        handler = FunctionHandler(gateway)

        result = run(handler.handle_function_call(
            "c", "travelTime", {"origin": "Rhodes Town", "destination": "Lindos", "mode": "car"},
        ))

        assert result == {"success": True, "distanceMeters": 2500, "durationSeconds": 330, "durationMinutes": 6}

    def test_travel_time_missing_arguments(self):
        result = run(FunctionHandler(PlaceLookupGateway()).handle_function_call("c", "travelTime", {"origin": "x"}))
        assert result["success"] is False
        assert "destination" in result["error"]

    def test_unknown_function(self):
        result = run(FunctionHandler(PlaceLookupGateway()).handle_function_call("c", "bookHotel", {}))
        assert result == {"error": "Unknown function: bookHotel", "success": False}

    def test_errors_are_returned_not_raised(self):
        gateway = PlaceLookupGateway()
        gateway.find_nearby = AsyncMock(side_effect=RuntimeError("unexpected"))
        handler = FunctionHandler(gateway)

        result = run(handler.handle_function_call("c", "findNearby", {"lat": 36.4, "lng": 28.2}))

        assert result == {"error": "unexpected", "success": False}

    def test_missing_coordinates(self):
        result = run(FunctionHandler(PlaceLookupGateway()).handle_function_call("c", "findNearby", {"lat": 36.4}))
        assert result["error"] == "Missing required parameter: lng"

    def test_contextual_recommendations(self, store):
        handler = FunctionHandler(PlaceLookupGateway(knowledge_store=store), preferences={"budget": "mid-range"})

        result = run(handler.handle_function_call(
            "c", "contextualRecommendations",
            {"lat": OLD_TOWN.lat, "lng": OLD_TOWN.lng, "activityType": "beach"},
        ))

        assert result["success"] is True
        assert [r["name"] for r in result["recommendations"]] == ["Elli Beach"]
        assert "Convenient parking available" in result["recommendations"][0]["contextualTips"]

    def test_contextual_recommendations_unavailable(self):
        result = run(FunctionHandler(PlaceLookupGateway()).handle_function_call(
            "c", "contextualRecommendations", {"lat": 36.4, "lng": 28.2},
        ))
        assert result["success"] is False

# wander_travel/api/agent/function_handler.py
"""Handle tool calls requested by the chat model."""

import logging
from typing import Any, Dict, List, Optional

from wander_travel.api.places.gateway import SUPPORTED_MODES

logger = logging.getLogger(__name__)

FIND_NEARBY = {
    "type": "function",
    "function": {
        "name": "findNearby",
        "description": "Find places of a category (restaurant, beach, attraction, ...) near a coordinate",
        "parameters": {
            "type": "object",
            "properties": {
                "lat": {"type": "number", "description": "Latitude of the search center"},
                "lng": {"type": "number", "description": "Longitude of the search center"},
                "radius": {"type": "integer", "description": "Search radius in meters", "default": 1000},
                "category": {"type": "string", "description": "Place category", "default": "restaurant"},
            },
            "required": ["lat", "lng"],
        },
    },
}

TRAVEL_TIME = {
    "type": "function",
    "function": {
        "name": "travelTime",
        "description": "Get travel distance and duration between two locations",
        "parameters": {
            "type": "object",
            "properties": {
                "origin": {"type": "string", "description": "Address or 'lat,lng'"},
                "destination": {"type": "string", "description": "Address or 'lat,lng'"},
                "mode": {"type": "string", "enum": list(SUPPORTED_MODES), "default": "driving"},
            },
            "required": ["origin", "destination"],
        },
    },
}

CONTEXTUAL_RECOMMENDATIONS = {
    "type": "function",
    "function": {
        "name": "contextualRecommendations",
        "description": "Recommend places matched to the traveler's preferences, activity and time of day",
        "parameters": {
            "type": "object",
            "properties": {
                "lat": {"type": "number"},
                "lng": {"type": "number"},
                "activityType": {
                    "type": "string",
                    "enum": ["dining", "sightseeing", "beach", "shopping", "nightlife", "culture", "nature"],
                },
                "timeOfDay": {"type": "string", "enum": ["morning", "afternoon", "evening", "sunset"]},
                "radius": {"type": "integer", "default": 5000},
            },
            "required": ["lat", "lng"],
        },
    },
}


class FunctionHandler:
    """Dispatches model tool calls to the place lookup gateway."""

    def __init__(self, gateway, preferences: Optional[Dict[str, Any]] = None):
        """Initialize function handler.

        Args:
            gateway: PlaceLookupGateway used by every tool
            preferences: User preferences passed to contextual recommendations
        """
        self.gateway = gateway
        self.preferences = preferences or {}

        # Function registry
        self.functions = {
            "findNearby": self._handle_find_nearby,
            "travelTime": self._handle_travel_time,
            "contextualRecommendations": self._handle_contextual_recommendations,
        }
        self.calls: List[str] = []

    async def function_definitions(self) -> List[Dict[str, Any]]:
        """Tool schema offered to the model for this turn."""
        definitions = [FIND_NEARBY, TRAVEL_TIME]
        if await self.gateway.enhanced_available():
            definitions.append(CONTEXTUAL_RECOMMENDATIONS)
        return definitions

    async def handle_function_call(self, call_id: str, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute one tool call.

        Never raises: failures come back as an ``error`` result so the model
        can react to them on its next turn.

        Args:
            call_id: Tool call id from the model
            name: Function name
            arguments: Decoded function arguments

        Returns:
            JSON-serialisable tool result
        """
        logger.info(f"Handling function call: {name} with args {arguments}")
        self.calls.append(name)

        if name not in self.functions:
            return {"error": f"Unknown function: {name}", "success": False}

        try:
            return await self.functions[name](arguments)
        except Exception as e:
            logger.error(f"Error executing function {name} ({call_id}): {e}")
            return {"error": str(e), "success": False}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _coordinate(args: Dict[str, Any], key: str) -> float:
        value = args.get(key)
        if value is None:
            raise ValueError(f"Missing required parameter: {key}")
        return float(value)

    async def _handle_find_nearby(self, args: Dict[str, Any]) -> Dict[str, Any]:
        lat, lng = self._coordinate(args, "lat"), self._coordinate(args, "lng")
        result = await self.gateway.find_nearby(
            lat,
            lng,
            radius=int(args.get("radius") or 1000),
            category=args.get("category") or args.get("type") or "restaurant",
        )
        return {"success": True, **result.to_dict()}

    async def _handle_travel_time(self, args: Dict[str, Any]) -> Dict[str, Any]:
        origin, destination = args.get("origin"), args.get("destination")
        if not origin or not destination:
            return {"success": False, "error": "Missing required parameters: origin and destination"}

        estimate = await self.gateway.travel_time(str(origin), str(destination), args.get("mode"))
        if estimate is None:
            return {"success": False, "error": "No route found"}
        return {"success": True, **estimate.to_dict(), "durationMinutes": estimate.duration_minutes}

    async def _handle_contextual_recommendations(self, args: Dict[str, Any]) -> Dict[str, Any]:
        lat, lng = self._coordinate(args, "lat"), self._coordinate(args, "lng")
        result = await self.gateway.contextual_recommendations(
            lat,
            lng,
            preferences=self.preferences,
            time_of_day=args.get("timeOfDay"),
            activity_type=args.get("activityType"),
            radius=int(args.get("radius") or 5000),
        )
        if result is None:
            return {"success": False, "error": "Contextual recommendations are not available"}
        return {
            "success": True,
            "tier": result.tier.value,
            "recommendations": [place.to_dict() for place in result],
        }

# wander_travel/routes/travel.py
"""Travel routes and blueprint configuration."""

import asyncio
import logging

from flask import Blueprint, jsonify, request

from wander_travel.api.agent.prompts import FALLBACK_REPLY
from wander_travel.api.errors import LLMUnavailable
from wander_travel.api.services.itinerary_service import ItineraryService, parse_user_location

logger = logging.getLogger(__name__)


def create_travel_blueprint(service_factory=ItineraryService.from_config):
    """Create and configure the travel blueprint.

    Args:
        service_factory: Callable returning the ItineraryService; called once,
            on the first request

    Returns:
        Configured Flask Blueprint
    """
    travel_bp = Blueprint("travel", __name__, url_prefix="/travel")
    state = {}

    def get_service() -> ItineraryService:
        if "service" not in state:
            state["service"] = service_factory()
        return state["service"]

    @travel_bp.route("/api/chat", methods=["POST"])
    def api_chat():
        """Plan one chat turn."""
        data = request.get_json(silent=True) or {}
        prompt = data.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            return jsonify({"error": "prompt is required"}), 400

        history = data.get("history") if isinstance(data.get("history"), list) else []
        preferences = data.get("userPreferences") if isinstance(data.get("userPreferences"), dict) else None

        try:
            result = asyncio.run(get_service().plan(
                history,
                prompt,
                user_location=parse_user_location(data.get("userLocation")),
                user_preferences=preferences,
            ))
        except LLMUnavailable as e:
            logger.error(f"Chat planning failed, LLM unavailable: {e}")
            return jsonify({"error": "LLM unavailable", "reply": FALLBACK_REPLY, "stops": []}), 502
        except Exception as e:
            logger.exception(f"Chat planning failed: {e}")
            return jsonify({"reply": FALLBACK_REPLY, "stops": [], "diagnostics": {"error": str(e)}})

        return jsonify(result.to_dict())

    @travel_bp.route("/api/rounds", methods=["POST"])
    def api_rounds():
        """Run a full round-based planning session."""
        data = request.get_json(silent=True) or {}
        preferences = data.get("userPreferences") if isinstance(data.get("userPreferences"), dict) else None

        try:
            session = asyncio.run(get_service().plan_rounds(
                user_location=parse_user_location(data.get("userLocation")),
                user_preferences=preferences,
            ))
        except Exception as e:
            logger.exception(f"Round planning failed: {e}")
            return jsonify({"error": str(e)}), 500

        return jsonify(session.to_dict())

    @travel_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "travel"})

    return travel_bp


__all__ = ["create_travel_blueprint"]

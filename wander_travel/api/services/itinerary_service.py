# wander_travel/api/services/itinerary_service.py
"""Service layer: builds the planning pipeline and exposes the produced interface."""

import logging
from typing import Any, Dict, List, Optional

from wander_travel.api.agent.orchestrator import ConversationOrchestrator
from wander_travel.api.agent.round_planner import RoundPlanner, RoundSession
from wander_travel.api.config import (
    get_google_maps_config,
    get_mapbox_config,
    get_planner_config,
    get_region_config,
)
from wander_travel.api.geocoding import (
    GeocodeCache,
    Geocoder,
    GeoRegion,
    GooglePlacesGeocoder,
    MapboxGeocoder,
)
from wander_travel.api.llm import ChatClient
from wander_travel.api.models import Coordinates, PlanningContext, PlanResult
from wander_travel.api.places.gateway import PlaceLookupGateway
from wander_travel.api.places.knowledge_store import InMemoryKnowledgeStore
from wander_travel.api.places.providers import GoogleMapsProvider, MapboxProvider
from wander_travel.api.services.travel_service import TravelAugmenter

logger = logging.getLogger(__name__)


def parse_user_location(value: Any) -> Optional[Coordinates]:
    """Accept ``{"lat", "lng"}`` or ``{"latitude", "longitude"}``; None otherwise."""
    if not isinstance(value, dict):
        return None
    coords = Coordinates.from_dict(value)
    if coords is None:
        coords = Coordinates.from_dict({"lat": value.get("latitude"), "lng": value.get("longitude")})
    return coords


class ItineraryService:
    """Owns the long-lived pipeline pieces (gateway, geocode cache, chat client)."""

    def __init__(self, chat_client, gateway: PlaceLookupGateway, geocoder: Optional[Geocoder] = None,
                 region: Optional[GeoRegion] = None, max_iterations: int = 5,
                 default_radius: int = 5000, default_limit: int = 15):
        self.chat = chat_client
        self.gateway = gateway
        self.geocoder = geocoder
        self.region = region or GeoRegion.from_config()
        self.augmenter = TravelAugmenter(gateway)
        self.orchestrator = ConversationOrchestrator(
            chat_client,
            gateway,
            geocoder=geocoder,
            augmenter=self.augmenter,
            region_name=self.region.name,
            max_iterations=max_iterations,
        )
        self.round_planner = RoundPlanner(
            chat_client,
            gateway,
            augmenter=self.augmenter,
            region_name=self.region.name,
            default_radius=default_radius,
            default_limit=default_limit,
        )

    @classmethod
    def from_config(cls) -> "ItineraryService":
        """Wire every tier from environment configuration.

        Providers without credentials are left out of their chains.
        """
        planner_cfg = get_planner_config()
        region = GeoRegion.from_config(get_region_config())
        timeout = planner_cfg["provider_timeout_seconds"]
        google_key = get_google_maps_config()["api_key"]
        mapbox_token = get_mapbox_config()["access_token"]

        store = None
        if planner_cfg["knowledge_store_path"]:
            try:
                store = InMemoryKnowledgeStore.from_json_file(planner_cfg["knowledge_store_path"])
            except (OSError, ValueError) as e:
                logger.error(f"Could not load knowledge store: {e}")

        gateway = PlaceLookupGateway(
            knowledge_store=store,
            basic=GoogleMapsProvider(google_key, timeout) if google_key else None,
            emergency=MapboxProvider(mapbox_token, timeout) if mapbox_token else None,
            center=region.center,
        )
        geocoder = Geocoder(
            [
                GooglePlacesGeocoder(google_key, region, timeout) if google_key else None,
                MapboxGeocoder(mapbox_token, region, timeout) if mapbox_token else None,
            ],
            region,
            GeocodeCache(planner_cfg["geocode_cache_ttl_seconds"]),
        )
        return cls(
            ChatClient(),
            gateway,
            geocoder=geocoder,
            region=region,
            max_iterations=planner_cfg["max_iterations"],
            default_radius=planner_cfg["default_radius_m"],
            default_limit=planner_cfg["default_limit"],
        )

    async def plan(self, history: Optional[List[Dict[str, Any]]], prompt: str,
                   user_location: Optional[Coordinates] = None,
                   user_preferences: Optional[Dict[str, Any]] = None) -> PlanResult:
        """Plan one chat turn.

        Args:
            history: Prior chat messages
            prompt: New user message
            user_location: Live user coordinates
            user_preferences: Preference set

        Returns:
            PlanResult (reply text, stops, diagnostics)

        Raises:
            ValueError: If the prompt is empty
            LLMUnavailable: If the chat endpoint cannot be reached
        """
        if not prompt or not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("Invalid prompt parameter")

        logger.info(f"Planning turn: {prompt[:80]!r} (history={len(history or [])})")
        return await self.orchestrator.run(history, prompt, user_location, user_preferences)

    async def plan_rounds(self, user_location: Optional[Coordinates] = None,
                          user_preferences: Optional[Dict[str, Any]] = None,
                          selected: Optional[List] = None) -> RoundSession:
        context = PlanningContext(
            user_location=user_location,
            preferences=user_preferences or {},
            selected=list(selected or []),
        )
        return await self.round_planner.run(context)

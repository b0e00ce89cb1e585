"""Tiered place lookup: knowledge store first, then two map providers.

Every public method walks the same ordered chain (enhanced -> basic ->
emergency) through ``first_success``; a tier that raises or comes back empty
hands over to the next one. Results carry the tier that produced them so
callers know whether spatial-context fields are meaningful.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from wander_travel.api.errors import AllTiersFailed, ProviderTierFailure
from wander_travel.api.fallback import Outcome, Strategy, first_success
from wander_travel.api.models import Coordinates, Place, SearchCriteria, Tier, TierResult, TravelEstimate

logger = logging.getLogger(__name__)

SUPPORTED_MODES = ("driving", "walking", "cycling")

_MODE_ALIASES = {
    "drive": "driving",
    "car": "driving",
    "driving-traffic": "driving",
    "transit": "driving",
    "bus": "driving",
    "taxi": "driving",
    "walk": "walking",
    "foot": "walking",
    "on_foot": "walking",
    "hiking": "walking",
    "bike": "cycling",
    "bicycle": "cycling",
    "bicycling": "cycling",
    "cycle": "cycling",
}

ACTIVITY_CATEGORIES = {
    "dining": ["restaurant", "cafe", "bar"],
    "sightseeing": ["attraction", "museum", "historical_site"],
    "beach": ["beach"],
    "shopping": ["shopping_mall", "store", "shopping"],
    "nightlife": ["bar", "nightclub"],
    "culture": ["museum", "gallery", "theater", "historical_site", "cultural"],
    "nature": ["park", "beach", "hiking_trail", "nature"],
}

BUDGET_PRICE_LEVELS = {"budget": 1, "mid-range": 2, "luxury": 3}

EVENING_TAGS = ["sunset-view", "romantic", "terrace"]


def coerce_mode(mode: Optional[str]) -> str:
    """Map any travel-mode string onto a supported profile (default driving)."""
    value = (mode or "").strip().lower()
    if value in SUPPORTED_MODES:
        return value
    coerced = _MODE_ALIASES.get(value, "driving")
    if value:
        logger.debug(f"Coerced travel mode '{mode}' to '{coerced}'")
    return coerced


def contextual_tips(place: Place, time_of_day: Optional[str], activity_type: Optional[str]) -> List[str]:
    tips = []
    if time_of_day == "sunset" and "sunset-view" in place.tags:
        tips.append("Perfect timing for sunset views!")
    if time_of_day == "evening" and place.category == "restaurant":
        tips.append("Great choice for evening dining")
    if activity_type == "beach" and "parking" in place.amenities:
        tips.append("Convenient parking available")
    if place.rating is not None and place.rating >= 4.5:
        tips.append("Highly rated by visitors")
    tips.extend(place.local_tips[:2])
    return tips


class PlaceLookupGateway:
    """Find places and travel times through an ordered chain of tiers."""

    def __init__(self, knowledge_store=None, basic=None, emergency=None, spatial_context: bool = True,
                 center: Optional[Coordinates] = None):
        self.knowledge_store = knowledge_store
        self.basic = basic
        self.emergency = emergency
        self.spatial_context = spatial_context
        # Search origin for criteria that carry no location
        self.center = center
        self.usage: Counter = Counter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enhanced_available(self) -> bool:
        if self.knowledge_store is None:
            return False
        try:
            return bool(await self.knowledge_store.is_available())
        except Exception as e:
            logger.warning(f"Knowledge store availability check failed: {e}")
            return False

    async def find_nearby(self, lat: float, lng: float, radius: int = 1000,
                          category: str = "restaurant", limit: int = 10,
                          strict: bool = False) -> TierResult:
        """Places of *category* within *radius* metres of (lat, lng).

        Returns an empty, untagged result when every tier comes up empty or
        raises; with ``strict=True`` total failure raises ``AllTiersFailed``.
        """
        radius = radius if radius and radius > 0 else 1000
        limit = limit if limit and limit > 0 else 10

        strategies = []
        if self.knowledge_store is not None:
            strategies.append(Strategy(
                Tier.ENHANCED.value,
                lambda: self._enhanced_nearby(lat, lng, radius, category, limit),
            ))
        for provider in (self.basic, self.emergency):
            if provider is not None:
                strategies.append(Strategy(
                    provider.tier.value,
                    lambda p=provider: p.search_nearby(lat, lng, radius, category, limit),
                ))

        outcome = await first_success(strategies, label=f"findNearby {category}")
        return self._tier_result(outcome, strategies, f"findNearby {category}", strict)

    async def search(self, criteria: SearchCriteria, strict: bool = False) -> TierResult:
        """Criteria search used by the round planner.

        Tries the knowledge store's advanced search, then a type-only store
        search, then the map providers. Excluded ids and names are filtered
        out of whatever tier answers.
        """
        category = criteria.categories[0]
        lat, lng = self._origin(criteria)

        strategies = []
        if self.knowledge_store is not None:
            strategies.append(Strategy(Tier.ENHANCED.value, lambda: self._enhanced_advanced(criteria)))
            strategies.append(Strategy(f"{Tier.ENHANCED.value}/type", lambda: self._enhanced_type_only(criteria)))
        if lat is not None and lng is not None:
            for provider in (self.basic, self.emergency):
                if provider is not None:
                    strategies.append(Strategy(
                        provider.tier.value,
                        lambda p=provider: self._provider_search(p, criteria),
                    ))

        outcome = await first_success(strategies, label=f"search {category}")
        return self._tier_result(outcome, strategies, f"search {category}", strict)

    async def travel_time(self, origin: str, destination: str, mode: Optional[str] = "driving",
                          strict: bool = False) -> Optional[TravelEstimate]:
        """Distance and duration between two tokens ("lat,lng" or an address)."""
        mode = coerce_mode(mode)
        strategies = [
            Strategy(provider.tier.value, lambda p=provider: p.route(origin, destination, mode))
            for provider in (self.basic, self.emergency)
            if provider is not None
        ]
        outcome = await first_success(
            strategies,
            accept=lambda value: value is not None,
            label=f"travelTime {origin} -> {destination}",
        )
        self._count(outcome, strategies)
        if outcome.succeeded:
            return outcome.value
        if outcome.all_raised:
            logger.error(f"All travel-time tiers failed: {outcome.failures}")
            if strict:
                raise AllTiersFailed("travelTime", outcome.failures)
        return None

    async def contextual_recommendations(self, lat: float, lng: float,
                                         preferences: Optional[Dict[str, Any]] = None,
                                         time_of_day: Optional[str] = None,
                                         activity_type: Optional[str] = None,
                                         radius: int = 5000, limit: int = 15) -> Optional[TierResult]:
        """Preference-aware knowledge store search (enhanced tier only).

        Returns None when the knowledge store is not available.
        """
        if not await self.enhanced_available():
            logger.info("Enhanced features not available for contextual recommendations")
            return None

        preferences = preferences or {}
        criteria = SearchCriteria(
            latitude=lat,
            longitude=lng,
            radius_meters=radius,
            categories=ACTIVITY_CATEGORIES.get(activity_type or "", []),
            limit=limit,
            min_rating=preferences.get("minRating"),
            price_level=BUDGET_PRICE_LEVELS.get(preferences.get("budget"), 3) if preferences.get("budget") else None,
            tags=list(EVENING_TAGS) if time_of_day in ("evening", "sunset") else [],
        )
        try:
            places = await self.knowledge_store.search_advanced(criteria)
        except Exception as e:
            logger.warning(f"Contextual recommendations failed: {e}")
            return None

        for place in places:
            place.contextual_tips = contextual_tips(place, time_of_day, activity_type)
            place.tier = Tier.ENHANCED
        return TierResult(Tier.ENHANCED, places)

    # ------------------------------------------------------------------
    # Tier implementations
    # ------------------------------------------------------------------

    async def _require_store(self):
        if not await self.knowledge_store.is_available():
            raise ProviderTierFailure(Tier.ENHANCED.value, "knowledge store unavailable")

    async def _enhanced_nearby(self, lat, lng, radius, category, limit) -> List[Place]:
        await self._require_store()
        places = await self.knowledge_store.search_by_type(category, lat, lng, radius, limit)
        if not places:
            logger.info(f"No {category} in knowledge store within {radius}m, widening search")
            places = await self.knowledge_store.get_nearby(lat, lng, radius * 2, [category], max(1, limit // 2))
        if places and self.spatial_context:
            places = await self._with_spatial_context(places)
        return places

    async def _enhanced_advanced(self, criteria: SearchCriteria) -> List[Place]:
        await self._require_store()
        return self._apply_exclusions(await self.knowledge_store.search_advanced(criteria), criteria)

    async def _enhanced_type_only(self, criteria: SearchCriteria) -> List[Place]:
        await self._require_store()
        lat, lng = self._origin(criteria)
        if lat is None or lng is None:
            return []
        places = await self.knowledge_store.search_by_type(
            criteria.categories[0], lat, lng, criteria.radius_meters, criteria.limit
        )
        return self._apply_exclusions(places, criteria)

    async def _provider_search(self, provider, criteria: SearchCriteria) -> List[Place]:
        lat, lng = self._origin(criteria)
        places = await provider.search_nearby(
            lat, lng, criteria.radius_meters, criteria.categories[0], criteria.limit,
        )
        return self._apply_exclusions(places, criteria)

    async def _with_spatial_context(self, places: List[Place]) -> List[Place]:
        async def enrich(place: Place) -> Place:
            try:
                adjacent = await self.knowledge_store.get_adjacent(place.id, 3)
                walking = await self.knowledge_store.get_walking_distance(place.id, 5)
            except Exception as e:
                logger.warning(f"Error enhancing place {place.id}: {e}")
                return place
            place.spatial_context = {
                "adjacent": [
                    {"name": r["name"], "type": r["type"], "distance": r["distance_meters"]}
                    for r in adjacent or []
                ],
                "walkingDistance": [
                    {"name": r["name"], "type": r["type"], "distance": r["distance_meters"],
                     "walkingTime": r.get("walking_minutes")}
                    for r in walking or []
                ],
            }
            return place

        return list(await asyncio.gather(*(enrich(p) for p in places)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _origin(self, criteria: SearchCriteria):
        if criteria.latitude is not None and criteria.longitude is not None:
            return criteria.latitude, criteria.longitude
        if self.center is not None:
            return self.center.lat, self.center.lng
        return None, None

    @staticmethod
    def _apply_exclusions(places: List[Place], criteria: SearchCriteria) -> List[Place]:
        excluded_ids = set(criteria.exclude_ids)
        excluded_names = {n.lower() for n in criteria.exclude_names}
        return [
            p for p in places
            if p.id not in excluded_ids and p.name.lower() not in excluded_names
        ]

    def _count(self, outcome: Outcome, strategies: List[Strategy]) -> None:
        for strategy in strategies[:outcome.attempted]:
            if strategy.name in outcome.failures and strategy.name != outcome.name:
                self.usage[f"{strategy.name}:failure"] += 1
            elif strategy.name != outcome.name:
                self.usage[f"{strategy.name}:empty"] += 1
        if outcome.succeeded:
            self.usage[f"{outcome.name}:success"] += 1

    def _tier_result(self, outcome: Outcome, strategies: List[Strategy], operation: str,
                     strict: bool) -> TierResult:
        self._count(outcome, strategies)
        if outcome.succeeded:
            tier = Tier(outcome.name.split("/")[0])
            places = list(outcome.value)
            for place in places:
                place.tier = tier
            logger.info(f"{operation}: {len(places)} results from {tier.value} tier")
            return TierResult(tier, places)

        if outcome.all_raised:
            logger.error(f"{operation}: all tiers failed {outcome.failures}")
            if strict:
                raise AllTiersFailed(operation, outcome.failures)
        else:
            logger.info(f"{operation}: no results from any tier")
        return TierResult(None, [])

    def usage_summary(self) -> Dict[str, int]:
        return dict(self.usage)

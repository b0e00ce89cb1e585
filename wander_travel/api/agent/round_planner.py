# wander_travel/api/agent/round_planner.py
"""Round-based discovery planner.

Each round asks the model which kind of place to look for, asks it to turn
that intent into a knowledge-store query, runs the query through the place
lookup gateway and finally asks the model to curate the raw hits. Every
model-assisted step has its own deterministic fallback, so a round always
produces recommendations when the gateway has data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from wander_travel.api.agent import prompts
from wander_travel.api.fallback import Strategy, first_success
from wander_travel.api.models import Place, PlanningContext, SearchCriteria, Stop, Tier
from wander_travel.api.services.travel_service import order_by_proximity

logger = logging.getLogger(__name__)

CURATION_INPUT_LIMIT = 10


@dataclass
class RoundConfig:
    round_number: int
    poi_type: str
    title: str = ""
    reasoning: str = ""
    expected_selections: int = 1
    search_criteria: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "roundNumber": self.round_number,
            "poiType": self.poi_type,
            "title": self.title,
            "reasoning": self.reasoning,
            "expectedSelections": self.expected_selections,
            "searchCriteria": dict(self.search_criteria),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_number: int) -> "RoundConfig":
        poi_type = data.get("poiType")
        if not isinstance(poi_type, str) or not poi_type.strip():
            raise ValueError(f"Round {default_number} has no poiType")
        expected = data.get("expectedSelections")
        criteria = data.get("searchCriteria")
        return cls(
            round_number=int(data.get("roundNumber") or default_number),
            poi_type=poi_type.strip().lower(),
            title=str(data.get("title") or ""),
            reasoning=str(data.get("reasoning") or ""),
            expected_selections=int(expected) if isinstance(expected, (int, float)) and expected > 0 else 1,
            search_criteria=criteria if isinstance(criteria, dict) else {},
        )


FALLBACK_ROUNDS = [
    RoundConfig(1, "restaurant", "Start with authentic dining",
                "Food is essential and sets the cultural tone", 1,
                {"atmospherePreference": "authentic"}),
    RoundConfig(2, "beach", "Relax at beautiful beaches",
                "The coastline is the island's signature", 1,
                {"timeContext": "afternoon"}),
    RoundConfig(3, "attraction", "Explore cultural treasures",
                "History and culture round off the day", 1,
                {"atmospherePreference": "cultural"}),
]


@dataclass
class RoundStrategy:
    rationale: str
    rounds: List[RoundConfig]
    ai_generated: bool = True

    def to_dict(self) -> dict:
        return {
            "rationale": self.rationale,
            "rounds": [r.to_dict() for r in self.rounds],
            "aiGenerated": self.ai_generated,
        }


@dataclass
class RoundOutcome:
    round: RoundConfig
    query: Dict[str, Any]
    criteria: SearchCriteria
    tier: Optional[Tier]
    recommendations: List[Place]
    query_by_ai: bool = True
    curated_by_ai: bool = True

    def to_dict(self) -> dict:
        return {
            "round": self.round.to_dict(),
            "query": self.query,
            "criteria": self.criteria.to_dict(),
            "tier": self.tier.value if self.tier else None,
            "recommendations": [p.to_dict() for p in self.recommendations],
            "queryByAI": self.query_by_ai,
            "curatedByAI": self.curated_by_ai,
        }


@dataclass
class RoundSession:
    strategy: RoundStrategy
    rounds: List[RoundOutcome]
    stops: List[Stop]
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.to_dict(),
            "rounds": [r.to_dict() for r in self.rounds],
            "stops": [s.to_dict() for s in self.stops],
            "diagnostics": self.diagnostics,
        }


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _price_level(value: Any) -> Optional[int]:
    """The model may send one level or a list of acceptable levels."""
    if isinstance(value, list):
        levels = [_number(v) for v in value]
        levels = [v for v in levels if v is not None]
        return int(max(levels)) if levels else None
    level = _number(value)
    return int(level) if level is not None else None


class RoundPlanner:
    """Plans a day as a sequence of search-then-curate rounds."""

    def __init__(self, chat_client, gateway, augmenter=None, region_name: str = "Rhodes, Greece",
                 default_radius: int = 5000, default_limit: int = 15):
        self.chat = chat_client
        self.gateway = gateway
        self.augmenter = augmenter
        self.region_name = region_name
        self.default_radius = default_radius
        self.default_limit = default_limit

    # ------------------------------------------------------------------
    # Intent
    # ------------------------------------------------------------------

    async def plan_strategy(self, context: PlanningContext) -> RoundStrategy:
        """Ask the model for the round sequence; fixed three rounds on failure."""
        outcome = await first_success(
            [
                Strategy("ai", lambda: self._ai_strategy(context)),
                Strategy("fallback", self._fallback_strategy),
            ],
            label="round strategy",
        )
        strategy = outcome.value
        logger.info(
            f"Round strategy ({'AI' if strategy.ai_generated else 'fallback'}): "
            f"{', '.join(r.poi_type for r in strategy.rounds)}"
        )
        return strategy

    async def _ai_strategy(self, context: PlanningContext) -> RoundStrategy:
        msgs = prompts.strategy_messages(self.region_name, context.preferences)
        data = await self.chat.complete_json(msgs["system"], msgs["user"], temperature=0.7, max_tokens=1000)
        body = data.get("strategy") or {}
        raw_rounds = body.get("rounds") or []
        if not isinstance(raw_rounds, list) or not raw_rounds:
            raise ValueError("Strategy reply has no rounds")
        rounds = [RoundConfig.from_dict(r, i) for i, r in enumerate(raw_rounds, 1) if isinstance(r, dict)]
        if not rounds:
            raise ValueError("Strategy reply has no usable rounds")
        return RoundStrategy(rationale=str(body.get("rationale") or ""), rounds=rounds)

    @staticmethod
    async def _fallback_strategy() -> RoundStrategy:
        return RoundStrategy(
            rationale="Balanced fallback strategy covering food, beach and culture",
            rounds=[replace(r, search_criteria=dict(r.search_criteria)) for r in FALLBACK_ROUNDS],
            ai_generated=False,
        )

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def craft_query(self, round_config: RoundConfig, context: PlanningContext) -> Tuple[Dict[str, Any], bool]:
        """Return (query, crafted_by_ai)."""
        outcome = await first_success(
            [
                Strategy("ai", lambda: self._ai_query(round_config, context)),
                Strategy("fallback", lambda: self._fallback_query(round_config, context)),
            ],
            label=f"round {round_config.round_number} query",
        )
        return outcome.value, outcome.name == "ai"

    async def _ai_query(self, round_config: RoundConfig, context: PlanningContext) -> Dict[str, Any]:
        msgs = prompts.query_messages(
            self.region_name, round_config.to_dict(), context.preferences,
            context.user_location, context.selected,
        )
        data = await self.chat.complete_json(msgs["system"], msgs["user"], temperature=0.3, max_tokens=600)
        if not isinstance(data.get("searchParameters"), dict):
            raise ValueError("Query reply has no searchParameters")
        params = data["searchParameters"]
        for key in ("spatialContext", "filters"):
            if params.get(key) is not None and not isinstance(params[key], dict):
                raise ValueError(f"Query reply has a malformed {key}")
        radius = (params.get("spatialContext") or {}).get("radiusMeters")
        if radius is not None and not (_number(radius) or 0) > 0:
            raise ValueError(f"Query reply has an unusable radius: {radius!r}")
        return data

    async def _fallback_query(self, round_config: RoundConfig, context: PlanningContext) -> Dict[str, Any]:
        return {
            "strategy": "fallback",
            "searchParameters": {
                "primaryType": round_config.poi_type,
                "spatialContext": {
                    "useLocation": context.user_location is not None,
                    "radiusMeters": self.default_radius,
                },
                "filters": {"excludeIds": context.exclusion_ids()},
            },
        }

    def build_criteria(self, query: Dict[str, Any], round_config: RoundConfig,
                       context: PlanningContext) -> SearchCriteria:
        """Normalise a crafted query; selected stops are always excluded."""
        params = query.get("searchParameters")
        params = params if isinstance(params, dict) else {}
        spatial = params.get("spatialContext")
        spatial = spatial if isinstance(spatial, dict) else {}
        filters = params.get("filters")
        filters = filters if isinstance(filters, dict) else {}

        use_location = bool(spatial.get("useLocation")) and context.user_location is not None
        primary = params.get("primaryType")
        category = primary.strip().lower() if isinstance(primary, str) and primary.strip() else round_config.poi_type

        raw_ids = filters.get("excludeIds")
        exclude_ids = [str(i) for i in raw_ids] if isinstance(raw_ids, list) else []
        for place_id in context.exclusion_ids():
            if place_id not in exclude_ids:
                exclude_ids.append(place_id)

        tags = filters.get("tags")
        radius = _number(spatial.get("radiusMeters"))
        return SearchCriteria(
            latitude=context.user_location.lat if use_location else None,
            longitude=context.user_location.lng if use_location else None,
            radius_meters=int(radius) if radius and radius > 0 else self.default_radius,
            categories=[category],
            limit=self.default_limit,
            min_rating=_number(filters.get("minRating")),
            price_level=_price_level(filters.get("priceLevel")),
            tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
            exclude_ids=exclude_ids,
            exclude_names=[s.name for s in context.selected],
        )

    # ------------------------------------------------------------------
    # Curation
    # ------------------------------------------------------------------

    async def curate(self, places: List[Place], round_config: RoundConfig,
                     context: PlanningContext) -> Tuple[List[Place], bool]:
        """Return (ranked places, curated_by_ai)."""
        if not places:
            return [], False
        outcome = await first_success(
            [
                Strategy("ai", lambda: self._ai_curate(places, round_config, context)),
                Strategy("fallback", lambda: self._fallback_curate(places, round_config)),
            ],
            label=f"round {round_config.round_number} curation",
        )
        return outcome.value or [], outcome.name == "ai"

    async def _ai_curate(self, places: List[Place], round_config: RoundConfig,
                         context: PlanningContext) -> List[Place]:
        summaries = [
            {
                "id": p.id,
                "name": p.name,
                "type": p.category,
                "rating": p.rating,
                "description": p.description,
                "tags": p.tags,
                "latitude": p.latitude,
                "longitude": p.longitude,
            }
            for p in places[:CURATION_INPUT_LIMIT]
        ]
        msgs = prompts.curation_messages(
            self.region_name, round_config.to_dict(), context.preferences, context.selected, summaries,
        )
        data = await self.chat.complete_json(msgs["system"], msgs["user"], temperature=0.4, max_tokens=800)

        by_id = {str(p.id): p for p in places}
        curated = []
        for selection in data.get("selectedPOIs") or []:
            if not isinstance(selection, dict):
                continue
            place = by_id.pop(str(selection.get("id")), None)
            if place is not None:
                place.ai_reasoning = selection.get("reasoning")
                curated.append(place)
        logger.debug(f"AI curation kept {len(curated)} of {len(places)}: {data.get('curatorNotes')}")
        return curated

    @staticmethod
    async def _fallback_curate(places: List[Place], round_config: RoundConfig) -> List[Place]:
        ranked = sorted(places, key=lambda p: p.rating or 0, reverse=True)
        return ranked[:round_config.expected_selections]

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def execute_round(self, round_config: RoundConfig, context: PlanningContext) -> RoundOutcome:
        context.round_number = round_config.round_number
        query, query_by_ai = await self.craft_query(round_config, context)
        criteria = self.build_criteria(query, round_config, context)
        result = await self.gateway.search(criteria)
        recommendations, curated_by_ai = await self.curate(list(result), round_config, context)

        logger.info(
            f"Round {round_config.round_number} ({round_config.poi_type}): "
            f"{len(result)} hits, {len(recommendations)} recommended"
        )
        return RoundOutcome(
            round=round_config,
            query=query,
            criteria=criteria,
            tier=result.tier,
            recommendations=recommendations,
            query_by_ai=query_by_ai,
            curated_by_ai=curated_by_ai,
        )

    def select(self, context: PlanningContext, place: Place) -> Optional[Stop]:
        """Record *place* as selected. Returns None if it was already chosen."""
        if place.id in context.exclusion_ids():
            logger.debug(f"Place {place.id} already selected")
            return None
        stop = place.to_stop(fallback_address=self.region_name)
        context.selected.append(stop)
        return stop

    async def run(self, context: PlanningContext,
                  selector: Optional[Callable[[RoundConfig, List[Place]], List[Place]]] = None) -> RoundSession:
        """Play every round of the strategy and return the ordered selection.

        Without a *selector* the top ``expectedSelections`` recommendations
        of each round are picked.
        """
        strategy = await self.plan_strategy(context)
        outcomes = []
        for round_config in strategy.rounds:
            outcome = await self.execute_round(round_config, context)
            outcomes.append(outcome)
            if selector is not None:
                chosen = selector(round_config, outcome.recommendations)
            else:
                chosen = outcome.recommendations[:round_config.expected_selections]
            for place in chosen:
                self.select(context, place)

        stops = order_by_proximity(context.selected, context.user_location)
        legs = 0
        if self.augmenter is not None and stops:
            legs = await self.augmenter.augment(stops, context.user_location)

        return RoundSession(
            strategy=strategy,
            rounds=outcomes,
            stops=stops,
            diagnostics={
                "rounds": len(outcomes),
                "selected": len(stops),
                "travelLegsFilled": legs,
                "providerUsage": self.gateway.usage_summary(),
            },
        )

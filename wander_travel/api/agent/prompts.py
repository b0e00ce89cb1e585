# wander_travel/api/agent/prompts.py
"""Prompt construction for the conversation loop and the round planner."""

import json
from typing import Any, Dict, List, Optional

from wander_travel.api.models import Coordinates, Stop

PROCEED_INSTRUCTION = (
    "Please proceed and provide the full itinerary with all points of interest now. "
    "Do not ask me to wait, just provide the complete plan."
)

FINAL_ANSWER_INSTRUCTION = (
    "Provide the itinerary now. Include every recommended place as a single-line JSON record."
)

FALLBACK_REPLY = (
    "Sorry, I couldn't put an itinerary together this time. "
    "Could you tell me a bit more about what you'd like to do?"
)

# ---------------------------------------------------------------------------
# Conversation prompt
# ---------------------------------------------------------------------------

_RECORD_FORMAT = """{"name": "Full name of the location", "type": "Category (restaurant, attraction, beach, etc.)", "description": "Brief but engaging description", "location": {"address": "Full address", "coordinates": {"lat": 36.4, "lng": 28.2}}, "details": {"openingHours": "Operating hours if available", "priceRange": "€, €€ or €€€", "rating": "Average rating if available", "website": "Official website URL if available", "phone": "Contact number if available"}, "highlights": ["Key feature 1", "Key feature 2"], "tips": ["Local tip 1", "Local tip 2"], "bestTimeToVisit": "Recommended time of day or season", "nearbyAttractions": ["Nearby point 1", "Nearby point 2"], "travel": {"distanceMeters": 1200, "durationMinutes": 4}}"""

_PREFERENCE_LABELS = [
    ("budget", "Budget"),
    ("interests", "Interests"),
    ("timeOfDay", "Preferred times"),
    ("groupSize", "Group size"),
    ("pace", "Pace"),
    ("mobility", "Mobility"),
    ("dining", "Dining style"),
    ("duration", "Trip duration"),
]


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def build_preference_context(preferences: Optional[Dict[str, Any]]) -> str:
    """Render known user preferences as bullet lines (empty string if none)."""
    if not preferences:
        return ""
    lines = [
        f"- {label}: {_format_value(preferences[key])}"
        for key, label in _PREFERENCE_LABELS
        if preferences.get(key) not in (None, "", [])
    ]
    if not lines:
        return ""
    return "User Preferences:\n" + "\n".join(lines)


def build_system_prompt(region_name: str, preferences: Optional[Dict[str, Any]] = None,
                        contextual_tool: bool = False) -> str:
    prompt = f"""You are a passionate local expert and travel companion for {region_name}. Think of yourself as a friendly local friend who knows every hidden gem and secret spot.

Plan thoughtfully: consider the traveler's style, energy levels and interests, the flow of the day (energising mornings, breaks in the afternoon heat, memorable evenings) and practical details such as opening hours and busy times.

Use the tools to ground your recommendations:
- findNearby finds places of a category around a coordinate.
- travelTime gives the distance and duration between two places."""
    if contextual_tool:
        prompt += "\n- contextualRecommendations suggests places matched to the traveler's preferences and the time of day."

    prompt += f"""

IMPORTANT: For each location you recommend, provide its information as JSON in exactly this format:
{_RECORD_FORMAT}

RULES FOR JSON:
1. Each location's JSON must be on a single line
2. Use double quotes for all strings
3. Use numbers (not strings) for coordinates
4. Provide the JSON immediately after mentioning each location
5. The travel object describes the trip from the previous stop; leave it out if you do not know it

Example:
Here's a great spot to visit: {{"name": "Example Place", "type": "restaurant", ...}} Another amazing location is: {{"name": "Another Place", "type": "beach", ...}}

Begin by gathering any missing details from the user, then plan a personalized itinerary using the available tools."""

    preference_context = build_preference_context(preferences)
    if preference_context:
        prompt += "\n\n" + preference_context
    return prompt


def build_user_prompt(prompt: str, user_location: Optional[Coordinates] = None) -> str:
    if user_location is None:
        return prompt
    return f"[User is currently at coordinates: {user_location.lat}, {user_location.lng}] {prompt}"


# ---------------------------------------------------------------------------
# Round planner prompts
# ---------------------------------------------------------------------------

STRATEGY_SYSTEM_PROMPT = """You are an expert travel planner for {region}. Design a round-based discovery strategy: each round the traveler picks places of one type.

Available POI types:
- restaurant (tavernas, cafes, fine dining)
- beach (swimming, sunbathing, water sports)
- attraction (historical sites, museums, viewpoints)
- shopping (markets, boutiques, souvenirs)
- bar (nightlife, cocktails, local drinks)
- cultural (churches, monasteries, traditional areas)
- nature (parks, hiking trails, natural landmarks)

Create a 3-4 round strategy that builds a perfect day. Consider time flow (morning to evening), spatial relationships, energy levels, interests and group composition.

Return JSON with this exact structure:
{{"strategy": {{"rationale": "why this sequence works", "rounds": [{{"roundNumber": 1, "poiType": "restaurant", "title": "Perfect start with authentic dining", "reasoning": "why this type first", "expectedSelections": 1, "searchCriteria": {{"timeContext": "breakfast", "atmospherePreference": "authentic"}}}}]}}}}"""

QUERY_SYSTEM_PROMPT = """You are a {region} knowledge base query expert. Craft a database query that finds the best places for this round.

ROUND CONTEXT:
- POI Type: {poi_type}
- Round Title: {title}
- Search Criteria: {criteria}
- Already selected: {selected}

Return JSON:
{{"strategy": "brief description of the query approach", "searchParameters": {{"primaryType": "main POI type", "spatialContext": {{"useLocation": true, "radiusMeters": 5000}}, "filters": {{"priceLevel": 2, "minRating": 4.0, "tags": ["tag1"], "excludeIds": []}}}}}}"""

CURATION_SYSTEM_PROMPT = """You are a {region} travel curation expert.

ROUND CONTEXT:
- Round: {title}
- POI Type: {poi_type}
- Expected Selections: {expected}
- Already selected: {selected}

From the provided places select the best 4-5 that match the round's purpose and the traveler's preferences, offer variety, are not all clustered together and complement what was already selected.

Return place ids in ranked order (best first):
{{"selectedPOIs": [{{"id": "poi_id", "reasoning": "why this place fits"}}], "curatorNotes": "overall curation notes"}}"""


def _selected_names(selected: List[Stop]) -> str:
    return ", ".join(s.name for s in selected) or "none"


def strategy_messages(region: str, preferences: Dict[str, Any]) -> Dict[str, str]:
    preference_text = "\n".join(f"{k}: {_format_value(v)}" for k, v in preferences.items()) or "none given"
    return {
        "system": STRATEGY_SYSTEM_PROMPT.format(region=region),
        "user": f"User preferences:\n{preference_text}\n\nCreate an intelligent 3-4 round discovery strategy for {region}.",
    }


def query_messages(region: str, round_config: Dict[str, Any], preferences: Dict[str, Any],
                   user_location: Optional[Coordinates], selected: List[Stop]) -> Dict[str, str]:
    location = f"{user_location.lat}, {user_location.lng}" if user_location else "Not provided"
    selected_detail = ", ".join(f"{s.name} ({s.category})" for s in selected) or "None"
    return {
        "system": QUERY_SYSTEM_PROMPT.format(
            region=region,
            poi_type=round_config["poiType"],
            title=round_config.get("title", ""),
            criteria=json.dumps(round_config.get("searchCriteria") or {}),
            selected=_selected_names(selected),
        ),
        "user": (
            f"User Preferences: {json.dumps(preferences)}\n"
            f"User Location: {location}\n"
            f"Already Selected POIs: {selected_detail}"
        ),
    }


def curation_messages(region: str, round_config: Dict[str, Any], preferences: Dict[str, Any],
                      selected: List[Stop], summaries: List[Dict[str, Any]]) -> Dict[str, str]:
    return {
        "system": CURATION_SYSTEM_PROMPT.format(
            region=region,
            title=round_config.get("title", ""),
            poi_type=round_config["poiType"],
            expected=round_config.get("expectedSelections", 1),
            selected=_selected_names(selected),
        ),
        "user": (
            f"User Preferences: {json.dumps(preferences)}\n\n"
            f"POIs to curate:\n{json.dumps(summaries, indent=2)}"
        ),
    }

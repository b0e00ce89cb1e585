"""External map-search providers for the basic and emergency tiers.

Both clients are synchronous (``googlemaps`` and ``requests``) and bounded by
a per-call timeout; the async wrappers push the blocking call onto a worker
thread so the event loop keeps serving other tool calls meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional
from urllib.parse import quote

import googlemaps
import requests

from wander_travel.api.models import Coordinates, Place, Tier, TravelEstimate
from wander_travel.api.places.knowledge_store import haversine_m

logger = logging.getLogger(__name__)

MAPBOX_SEARCH_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"
MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/{profile}/{coords}"

# Google names the cycling profile differently
_GOOGLE_MODES = {"driving": "driving", "walking": "walking", "cycling": "bicycling"}


class GoogleMapsProvider:
    """Basic tier: Google Places nearby search and Directions."""

    name = "google"
    tier = Tier.BASIC

    def __init__(self, api_key: str, timeout: float = 8, client: Optional[googlemaps.Client] = None):
        self._client = client or googlemaps.Client(key=api_key, timeout=timeout)

    async def search_nearby(self, lat: float, lng: float, radius: int, category: str,
                            limit: int = 10) -> List[Place]:
        return await asyncio.to_thread(self._search_nearby_sync, lat, lng, radius, category, limit)

    async def route(self, origin: str, destination: str, mode: str = "driving") -> Optional[TravelEstimate]:
        return await asyncio.to_thread(self._route_sync, origin, destination, mode)

    def _search_nearby_sync(self, lat, lng, radius, category, limit):
        response = self._client.places_nearby(location=(lat, lng), radius=radius, type=category)
        results = response.get("results") or []
        if not results:
            logger.info(f"Google Places: no {category} results near {lat},{lng}")
        places = []
        for item in results[:limit]:
            loc = item.get("geometry", {}).get("location", {})
            places.append(Place(
                id=item.get("place_id") or item["name"],
                name=item["name"],
                category=category,
                latitude=loc.get("lat"),
                longitude=loc.get("lng"),
                address=item.get("vicinity"),
                rating=item.get("rating"),
                price_level=item.get("price_level"),
                tags=list(item.get("types") or []),
                tier=self.tier,
            ))
        return places

    def _route_sync(self, origin, destination, mode):
        routes = self._client.directions(origin, destination, mode=_GOOGLE_MODES.get(mode, "driving"))
        if not routes or not routes[0].get("legs"):
            logger.info(f"Google Directions: no route {origin} -> {destination}")
            return None
        leg = routes[0]["legs"][0]
        return TravelEstimate(
            distance_meters=leg["distance"]["value"],
            duration_seconds=leg["duration"]["value"],
        )


class MapboxProvider:
    """Emergency tier: Mapbox POI search and Directions."""

    name = "mapbox"
    tier = Tier.EMERGENCY

    def __init__(self, access_token: str, timeout: float = 8, session: Optional[requests.Session] = None):
        self.access_token = access_token
        self.timeout = timeout
        self._session = session or requests.Session()

    async def search_nearby(self, lat: float, lng: float, radius: int, category: str,
                            limit: int = 10) -> List[Place]:
        return await asyncio.to_thread(self._search_nearby_sync, lat, lng, radius, category, limit)

    async def route(self, origin: str, destination: str, mode: str = "driving") -> Optional[TravelEstimate]:
        return await asyncio.to_thread(self._route_sync, origin, destination, mode)

    def _get(self, url: str, **params) -> dict:
        params["access_token"] = self.access_token
        resp = self._session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _search_nearby_sync(self, lat, lng, radius, category, limit):
        data = self._get(
            MAPBOX_SEARCH_URL.format(query=quote(category.replace("_", " "))),
            proximity=f"{lng},{lat}",
            types="poi",
            limit=min(limit, 10),
        )
        places = []
        for feature in data.get("features") or []:
            center = feature.get("center") or []
            if len(center) < 2:
                continue
            f_lng, f_lat = center[:2]
            # The search API has no radius filter
            distance = haversine_m(lat, lng, f_lat, f_lng)
            if distance > radius:
                continue
            places.append(Place(
                id=feature.get("id") or feature.get("text"),
                name=feature.get("text") or feature.get("place_name"),
                category=category,
                latitude=f_lat,
                longitude=f_lng,
                address=feature.get("place_name"),
                distance_meters=round(distance),
                tier=self.tier,
            ))
        return places

    def _resolve(self, token: str) -> Optional[Coordinates]:
        coords = Coordinates.parse(token)
        if coords is not None:
            return coords
        data = self._get(MAPBOX_SEARCH_URL.format(query=quote(token)), limit=1)
        features = data.get("features") or []
        if not features or len(features[0].get("center") or []) < 2:
            return None
        f_lng, f_lat = features[0]["center"][:2]
        return Coordinates(f_lat, f_lng)

    def _route_sync(self, origin, destination, mode):
        start, end = self._resolve(origin), self._resolve(destination)
        if start is None or end is None:
            logger.info(f"Mapbox: could not resolve route endpoints {origin} -> {destination}")
            return None
        data = self._get(
            MAPBOX_DIRECTIONS_URL.format(
                profile=mode,
                coords=f"{start.lng},{start.lat};{end.lng},{end.lat}",
            ),
            overview="false",
        )
        routes = data.get("routes") or []
        if not routes:
            logger.info(f"Mapbox Directions: no route {origin} -> {destination}")
            return None
        return TravelEstimate(
            distance_meters=routes[0]["distance"],
            duration_seconds=routes[0]["duration"],
        )

"""Spatially-indexed place knowledge store (the enhanced lookup tier).

``KnowledgeStore`` is the contract the gateway and the round planner consume.
``InMemoryKnowledgeStore`` implements it over a list of POI records (loaded
from a JSON export of the curated place database) with great-circle distance
filtering and on-the-fly adjacency relationships.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from wander_travel.api.models import Place, SearchCriteria, Tier

logger = logging.getLogger(__name__)

_EARTH_RADIUS_M = 6371000.0

ADJACENT_METERS = 300
WALKING_METERS = 1200
WALKING_METERS_PER_MINUTE = 80


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    return 2 * _EARTH_RADIUS_M * math.asin(math.sqrt(a))


class KnowledgeStore:
    """Interface for the enhanced tier. All methods are coroutines."""

    async def is_available(self) -> bool:
        raise NotImplementedError

    async def search_by_type(self, category: str, lat: float, lng: float,
                             radius: int = 5000, limit: int = 20) -> List[Place]:
        raise NotImplementedError

    async def get_nearby(self, lat: float, lng: float, radius: int = 1000,
                         categories: Optional[List[str]] = None, limit: int = 10) -> List[Place]:
        raise NotImplementedError

    async def search_advanced(self, criteria: SearchCriteria) -> List[Place]:
        raise NotImplementedError

    async def get_adjacent(self, place_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def get_walking_distance(self, place_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        raise NotImplementedError


def _place_from_record(record: Dict[str, Any]) -> Place:
    rating = record.get("rating")
    return Place(
        id=str(record.get("id") or record.get("place_id")),
        name=record["name"],
        category=record.get("primary_type") or record.get("type") or "attraction",
        latitude=float(record["latitude"]),
        longitude=float(record["longitude"]),
        address=record.get("address"),
        rating=float(rating) if rating is not None else None,
        price_level=record.get("price_level"),
        opening_hours=record.get("opening_hours"),
        phone=record.get("phone"),
        website=record.get("website"),
        description=record.get("description"),
        tags=list(record.get("tags") or []),
        amenities=list(record.get("amenities") or []),
        highlights=list(record.get("highlights") or []),
        local_tips=list(record.get("local_tips") or []),
        tier=Tier.ENHANCED,
    )


class InMemoryKnowledgeStore(KnowledgeStore):
    """Knowledge store backed by an in-process list of POI records."""

    def __init__(self, records: Iterable[Dict[str, Any]]):
        self._places: List[Place] = []
        for record in records:
            try:
                self._places.append(_place_from_record(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed POI record {record.get('name', '?')}: {e}")
        self._by_id = {p.id: p for p in self._places}
        logger.info(f"Knowledge store loaded with {len(self._places)} places")

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryKnowledgeStore":
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        records = payload.get("pois", []) if isinstance(payload, dict) else payload
        return cls(records)

    def __len__(self) -> int:
        return len(self._places)

    async def is_available(self) -> bool:
        return bool(self._places)

    async def search_by_type(self, category, lat, lng, radius=5000, limit=20):
        return self._query(categories=[category], lat=lat, lng=lng, radius=radius, limit=limit)

    async def get_nearby(self, lat, lng, radius=1000, categories=None, limit=10):
        return self._query(categories=categories, lat=lat, lng=lng, radius=radius, limit=limit)

    async def search_advanced(self, criteria: SearchCriteria) -> List[Place]:
        return self._query(
            categories=criteria.categories,
            lat=criteria.latitude,
            lng=criteria.longitude,
            radius=criteria.radius_meters,
            limit=criteria.limit,
            min_rating=criteria.min_rating,
            price_level=criteria.price_level,
            tags=criteria.tags,
            exclude_ids=criteria.exclude_ids,
            exclude_names=criteria.exclude_names,
            search_text=criteria.search_text,
        )

    async def get_adjacent(self, place_id, limit=10):
        return self._relationships(place_id, ADJACENT_METERS, limit)

    async def get_walking_distance(self, place_id, limit=20):
        return self._relationships(place_id, WALKING_METERS, limit)

    def _query(self, categories=None, lat=None, lng=None, radius=None, limit=20,
               min_rating=None, price_level=None, tags=None, exclude_ids=None,
               exclude_names=None, search_text=None) -> List[Place]:
        wanted = {c.lower() for c in categories} if categories else None
        excluded_ids = set(exclude_ids or [])
        excluded_names = {n.lower() for n in exclude_names or []}
        wanted_tags = set(tags or [])
        needle = search_text.lower() if search_text else None
        located = lat is not None and lng is not None

        hits = []
        for place in self._places:
            if wanted is not None and place.category.lower() not in wanted:
                continue
            if place.id in excluded_ids or place.name.lower() in excluded_names:
                continue
            if min_rating is not None and (place.rating is None or place.rating < min_rating):
                continue
            if price_level is not None and place.price_level is not None and place.price_level > price_level:
                continue
            if wanted_tags and not wanted_tags.intersection(place.tags):
                continue
            if needle and needle not in place.name.lower() and needle not in (place.description or "").lower():
                continue

            distance = None
            if located:
                distance = haversine_m(lat, lng, place.latitude, place.longitude)
                if radius and distance > radius:
                    continue
            hits.append((place, distance))

        if located:
            hits.sort(key=lambda item: item[1])
        else:
            hits.sort(key=lambda item: item[0].rating or 0, reverse=True)

        results = []
        for place, distance in hits[:limit]:
            results.append(replace(place, distance_meters=round(distance) if distance is not None else None))
        return results

    def _relationships(self, place_id: str, max_meters: float, limit: int) -> List[Dict[str, Any]]:
        origin = self._by_id.get(str(place_id))
        if origin is None:
            raise KeyError(f"Unknown place id: {place_id}")

        related = []
        for other in self._places:
            if other.id == origin.id:
                continue
            distance = haversine_m(origin.latitude, origin.longitude, other.latitude, other.longitude)
            if distance <= max_meters:
                related.append({
                    "id": other.id,
                    "name": other.name,
                    "type": other.category,
                    "distance_meters": round(distance),
                    "walking_minutes": max(1, round(distance / WALKING_METERS_PER_MINUTE)),
                })
        related.sort(key=lambda rel: rel["distance_meters"])
        return related[:limit]

# wander_travel/api/geocoding.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import googlemaps
import requests

from wander_travel.api.config import get_region_config
from wander_travel.api.fallback import Strategy, first_success
from wander_travel.api.models import Coordinates, Stop

logger = logging.getLogger(__name__)

MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"


@dataclass
class GeoRegion:
    """Bounding box and center of the service region."""

    name: str
    north: float
    south: float
    east: float
    west: float
    center: Coordinates
    bias_radius_m: int = 50000

    def contains(self, coords: Optional[Coordinates]) -> bool:
        if coords is None:
            return False
        return self.south <= coords.lat <= self.north and self.west <= coords.lng <= self.east

    def bbox_param(self) -> str:
        """``west,south,east,north`` as Mapbox expects."""
        return f"{self.west},{self.south},{self.east},{self.north}"

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "GeoRegion":
        cfg = cfg or get_region_config()
        return cls(
            name=cfg["name"],
            north=cfg["north"],
            south=cfg["south"],
            east=cfg["east"],
            west=cfg["west"],
            center=Coordinates(cfg["center_lat"], cfg["center_lng"]),
            bias_radius_m=cfg["bias_radius_m"],
        )


class GeocodeCache:
    """In-process geocode cache keyed by the exact query string.

    Entries expire after ``ttl_seconds``. Concurrent writers can only ever
    store the same value for a key, so no lock is needed.
    """

    def __init__(self, ttl_seconds: float = 24 * 60 * 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Coordinates, float]] = {}

    def get(self, query: str) -> Optional[Coordinates]:
        entry = self._entries.get(query)
        if entry is None:
            return None
        coords, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[query]
            return None
        return coords

    def set(self, query: str, coords: Coordinates) -> None:
        self._entries[query] = (coords, self._clock())

    def __len__(self) -> int:
        return len(self._entries)


class GooglePlacesGeocoder:
    """Primary geocoder: Places text search biased toward the region center."""

    name = "google"

    def __init__(self, api_key: str, region: GeoRegion, timeout: float = 8,
                 client: Optional[googlemaps.Client] = None):
        self.region = region
        self._client = client or googlemaps.Client(key=api_key, timeout=timeout)

    async def lookup(self, query: str) -> Optional[Coordinates]:
        return await asyncio.to_thread(self._lookup_sync, query)

    def _lookup_sync(self, query: str) -> Optional[Coordinates]:
        logger.debug(f"Geocoding with Google Places: {query}")
        response = self._client.places(
            query=query,
            location=(self.region.center.lat, self.region.center.lng),
            radius=self.region.bias_radius_m,
            language="en",
        )
        results = response.get("results") or []
        if not results:
            logger.info(f"No Google Places result for: {query}")
            return None
        loc = results[0]["geometry"]["location"]
        return Coordinates(float(loc["lat"]), float(loc["lng"]))


class MapboxGeocoder:
    """Secondary geocoder: Mapbox forward geocoding restricted to the region bbox."""

    name = "mapbox"

    def __init__(self, access_token: str, region: GeoRegion, timeout: float = 8,
                 session: Optional[requests.Session] = None):
        self.access_token = access_token
        self.region = region
        self.timeout = timeout
        self._session = session or requests.Session()

    async def lookup(self, query: str) -> Optional[Coordinates]:
        return await asyncio.to_thread(self._lookup_sync, query)

    def _lookup_sync(self, query: str) -> Optional[Coordinates]:
        # Region context improves accuracy for bare POI names
        if self.region.name.lower() not in query.lower():
            query = f"{query}, {self.region.name}"
        logger.debug(f"Geocoding with Mapbox: {query}")

        resp = self._session.get(
            MAPBOX_GEOCODING_URL.format(query=quote(query)),
            params={
                "access_token": self.access_token,
                "bbox": self.region.bbox_param(),
                "limit": 1,
                "types": "poi,address,place",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        features = resp.json().get("features") or []
        if not features or not features[0].get("center"):
            logger.info(f"No Mapbox result for: {query}")
            return None
        lng, lat = features[0]["center"][:2]
        return Coordinates(float(lat), float(lng))


class Geocoder:
    """Resolve place names to coordinates inside the service region.

    Providers are tried in order; an out-of-region answer counts as a miss.
    When every provider misses, the region center is returned so callers
    never see ``None``. Only real resolutions are cached.
    """

    def __init__(self, providers: List, region: GeoRegion, cache: Optional[GeocodeCache] = None):
        self.providers = [p for p in providers if p is not None]
        self.region = region
        self.cache = cache if cache is not None else GeocodeCache()

    @staticmethod
    def build_query(name: Optional[str], address: Optional[str] = None) -> str:
        name = (name or "").strip()
        address = (address or "").strip()
        if name and address and name.lower() not in address.lower():
            return f"{name}, {address}"
        return address or name

    def normalize(self, coords: Optional[Coordinates]) -> Optional[Coordinates]:
        """Round in-region coordinates to 6 decimals; None for anything else."""
        if coords is None or not self.region.contains(coords):
            return None
        return coords.rounded()

    def center(self) -> Coordinates:
        return self.region.center.rounded()

    async def resolve(self, name: Optional[str], address: Optional[str] = None) -> Coordinates:
        query = self.build_query(name, address)
        if not query:
            logger.warning("Empty location name provided, using region center")
            return self.center()

        cached = self.cache.get(query)
        if cached is not None:
            logger.debug(f"Cache hit for geocoding: {query}")
            return cached

        strategies = [
            Strategy(provider.name, lambda p=provider: self._lookup_in_region(p, query))
            for provider in self.providers
        ]
        outcome = await first_success(strategies, label=f"geocode '{query}'")

        if outcome.succeeded:
            coords = outcome.value.rounded()
            self.cache.set(query, coords)
            logger.info(f"Geocoded '{query}' via {outcome.name} to {coords.lat}, {coords.lng}")
            return coords

        logger.warning(f"All geocoding failed for '{query}', using region center")
        return self.center()

    async def _lookup_in_region(self, provider, query: str) -> Optional[Coordinates]:
        coords = await provider.lookup(query)
        if coords is None:
            return None
        if not self.region.contains(coords):
            logger.info(f"{provider.name} coordinates outside {self.region.name}: {coords.lat}, {coords.lng}")
            return None
        return coords

    async def geocode_stops(self, stops: List[Stop]) -> int:
        """Fill or correct coordinates on *stops* in place, one stop at a time.

        Stops that already carry in-region coordinates are only normalised.
        Returns how many stops were sent to the providers.
        """
        looked_up = 0
        for index, stop in enumerate(stops):
            valid = self.normalize(stop.location.coordinates)
            if valid is not None:
                stop.location.coordinates = valid
                continue

            looked_up += 1
            try:
                stop.location.coordinates = await self.resolve(stop.name, stop.location.address)
            except Exception as e:
                logger.warning(f"Error geocoding stop {index + 1} '{stop.name}': {e}")
                stop.location.coordinates = self.center()

        logger.info(f"Geocoding complete: {looked_up}/{len(stops)} stops looked up")
        return looked_up


# Re-export for clean imports elsewhere
__all__ = [
    "GeoRegion",
    "GeocodeCache",
    "GooglePlacesGeocoder",
    "MapboxGeocoder",
    "Geocoder",
]

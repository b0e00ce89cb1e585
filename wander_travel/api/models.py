"""Shared data structures for itinerary planning.

Keeping the record types in one module lets the extractor, the geocoder, the
lookup gateway and both planners share a single source-of-truth definition
without importing each other.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Categories searched when a caller does not name any.
DEFAULT_CATEGORIES = [
    "restaurant",
    "beach",
    "attraction",
    "cultural",
    "nature",
    "shopping",
    "bar",
]


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _to_float(value: Any) -> Optional[float]:
    if _is_number(value):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Coordinates:
    lat: float
    lng: float

    def rounded(self, places: int = 6) -> "Coordinates":
        return Coordinates(round(self.lat, places), round(self.lng, places))

    def as_token(self) -> str:
        """Render as the ``"lat,lng"`` token the routing providers accept."""
        return f"{self.lat},{self.lng}"

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Coordinates"]:
        if not isinstance(data, dict):
            return None
        lat, lng = data.get("lat"), data.get("lng")
        if not (_is_number(lat) and _is_number(lng)):
            return None
        return cls(float(lat), float(lng))

    @classmethod
    def parse(cls, token: Any) -> Optional["Coordinates"]:
        """Parse a ``"lat,lng"`` token; None for addresses and junk."""
        if not isinstance(token, str) or token.count(",") != 1:
            return None
        lat, lng = (_to_float(part.strip()) for part in token.split(","))
        if lat is None or lng is None or not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return None
        return cls(lat, lng)


@dataclass
class Location:
    address: str
    coordinates: Optional[Coordinates] = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"address": self.address}
        if self.coordinates is not None:
            data["coordinates"] = self.coordinates.to_dict()
        return data


@dataclass
class StopDetails:
    opening_hours: Optional[str] = None
    price_range: Optional[str] = None
    rating: Optional[Any] = None  # number or free-form string ("4.5/5")
    website: Optional[str] = None
    phone: Optional[str] = None

    _KEYS = {
        "opening_hours": "openingHours",
        "price_range": "priceRange",
        "rating": "rating",
        "website": "website",
        "phone": "phone",
    }

    def to_dict(self) -> dict:
        return {
            camel: getattr(self, attr)
            for attr, camel in self._KEYS.items()
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StopDetails":
        if not isinstance(data, dict):
            return cls()
        return cls(**{attr: data.get(camel) for attr, camel in cls._KEYS.items()})


@dataclass
class TravelLeg:
    """Distance and time from the previous stop (or the user's origin)."""

    distance_meters: Optional[float] = None
    duration_minutes: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        # Zero placeholders emitted by the model count as missing.
        return (
            _is_number(self.distance_meters)
            and _is_number(self.duration_minutes)
            and self.distance_meters > 0
            and self.duration_minutes > 0
        )

    def to_dict(self) -> dict:
        return {
            "distanceMeters": self.distance_meters,
            "durationMinutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TravelLeg"]:
        if not isinstance(data, dict):
            return None
        return cls(
            distance_meters=_to_float(data.get("distanceMeters")),
            duration_minutes=_to_float(data.get("durationMinutes")),
        )


@dataclass
class Stop:
    """A single stop on a trip itinerary."""

    name: str
    category: str
    location: Location
    details: StopDetails = field(default_factory=StopDetails)
    description: Optional[str] = None
    highlights: List[str] = field(default_factory=list)
    tips: List[str] = field(default_factory=list)
    nearby_attractions: List[str] = field(default_factory=list)
    best_time_to_visit: Optional[str] = None
    travel: Optional[TravelLeg] = None
    place_id: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.location.coordinates

    def route_token(self) -> Optional[str]:
        """Coordinates when known, else the address."""
        if self.location.coordinates is not None:
            return self.location.coordinates.as_token()
        return self.location.address or None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {
            "name": self.name,
            "category": self.category,
            "location": self.location.to_dict(),
            "details": self.details.to_dict(),
            "highlights": list(self.highlights),
            "tips": list(self.tips),
            "nearbyAttractions": list(self.nearby_attractions),
        }
        if self.description:
            data["description"] = self.description
        if self.best_time_to_visit:
            data["bestTimeToVisit"] = self.best_time_to_visit
        if self.travel is not None:
            data["travel"] = self.travel.to_dict()
        if self.place_id:
            data["placeId"] = self.place_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stop":
        """Build a Stop from a payload that already passed validation."""
        location = data["location"]
        return cls(
            name=data["name"],
            category=data.get("category") or data.get("type"),
            location=Location(
                address=location["address"],
                coordinates=Coordinates.from_dict(location.get("coordinates")),
            ),
            details=StopDetails.from_dict(data.get("details")),
            description=data.get("description"),
            highlights=list(data.get("highlights") or []),
            tips=list(data.get("tips") or []),
            nearby_attractions=list(data.get("nearbyAttractions") or []),
            best_time_to_visit=data.get("bestTimeToVisit"),
            travel=TravelLeg.from_dict(data.get("travel")),
            place_id=data.get("placeId") or data.get("place_id") or data.get("id"),
        )


def stop_validation_error(data: Any) -> Optional[str]:
    """Return why *data* is not a valid Stop payload, or None if it is.

    ``type`` is accepted in place of ``category``.
    """
    if not isinstance(data, dict):
        return "record is not an object"
    if not isinstance(data.get("name"), str) or not data["name"].strip():
        return "missing name"
    category = data.get("category", data.get("type"))
    if not isinstance(category, str) or not category.strip():
        return "missing category"

    location = data.get("location")
    if not isinstance(location, dict):
        return "missing location"
    if not isinstance(location.get("address"), str) or not location["address"].strip():
        return "missing location.address"
    coords = location.get("coordinates")
    if coords is not None:
        if not isinstance(coords, dict):
            return "location.coordinates is not an object"
        if not (_is_number(coords.get("lat")) and _is_number(coords.get("lng"))):
            return "location.coordinates lat/lng must be numeric"

    details = data.get("details")
    if details is not None:
        if not isinstance(details, dict):
            return "details is not an object"
        rating = details.get("rating")
        if rating is not None and not (_is_number(rating) or isinstance(rating, str)):
            return "details.rating must be a number or string"

    for key in ("highlights", "tips", "nearbyAttractions"):
        if data.get(key) is not None and not isinstance(data[key], list):
            return f"{key} must be a list"
    return None


class Tier(str, Enum):
    ENHANCED = "enhanced"
    BASIC = "basic"
    EMERGENCY = "emergency"


@dataclass
class Place:
    """A raw hit from the knowledge store or a map provider."""

    id: str
    name: str
    category: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    opening_hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    local_tips: List[str] = field(default_factory=list)
    distance_meters: Optional[float] = None
    spatial_context: Optional[Dict[str, Any]] = None
    contextual_tips: List[str] = field(default_factory=list)
    ai_reasoning: Optional[str] = None
    tier: Optional[Tier] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.category,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
            "rating": self.rating,
            "price_level": self.price_level,
            "opening_hours": self.opening_hours,
            "phone": self.phone,
            "website": self.website,
            "description": self.description,
            "tags": list(self.tags),
            "amenities": list(self.amenities),
            "highlights": list(self.highlights),
            "local_tips": list(self.local_tips),
            "distance_meters": self.distance_meters,
            "tier": self.tier.value if self.tier else None,
        }
        if self.spatial_context is not None:
            data["spatialContext"] = self.spatial_context
        if self.contextual_tips:
            data["contextualTips"] = list(self.contextual_tips)
        if self.ai_reasoning:
            data["aiReasoning"] = self.ai_reasoning
        return data

    def to_stop(self, fallback_address: str = "") -> Stop:
        tips = list(self.local_tips) + [t for t in self.contextual_tips if t not in self.local_tips]
        return Stop(
            name=self.name,
            category=self.category,
            location=Location(
                address=self.address or fallback_address or self.name,
                coordinates=self.coordinates.rounded() if self.coordinates else None,
            ),
            details=StopDetails(
                opening_hours=self.opening_hours,
                price_range="€" * self.price_level if self.price_level else None,
                rating=self.rating,
                website=self.website,
                phone=self.phone,
            ),
            description=self.description,
            highlights=list(self.highlights),
            tips=tips,
            nearby_attractions=[
                rel["name"] for rel in (self.spatial_context or {}).get("adjacent", [])
            ],
            place_id=self.id,
        )


@dataclass
class TierResult:
    """Places tagged with the tier that produced them (None when every tier came up empty)."""

    tier: Optional[Tier]
    places: List[Place] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.places)

    def __iter__(self):
        return iter(self.places)

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value if self.tier else None,
            "places": [p.to_dict() for p in self.places],
        }


@dataclass
class TravelEstimate:
    distance_meters: float
    duration_seconds: float

    @property
    def duration_minutes(self) -> int:
        return int(round(self.duration_seconds / 60))

    def to_dict(self) -> dict:
        return {
            "distanceMeters": self.distance_meters,
            "durationSeconds": self.duration_seconds,
        }


@dataclass
class SearchCriteria:
    """Normalised request to the knowledge store or a map provider."""

    latitude: Optional[float]
    longitude: Optional[float]
    radius_meters: int = 5000
    categories: List[str] = field(default_factory=list)
    limit: int = 15
    min_rating: Optional[float] = None
    price_level: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    exclude_ids: List[str] = field(default_factory=list)
    exclude_names: List[str] = field(default_factory=list)
    search_text: Optional[str] = None

    def __post_init__(self):
        if not self.radius_meters or self.radius_meters <= 0:
            self.radius_meters = 5000
        if not self.limit or self.limit <= 0:
            self.limit = 15
        self.radius_meters = int(self.radius_meters)
        self.limit = int(self.limit)
        if not self.categories:
            self.categories = list(DEFAULT_CATEGORIES)

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radiusMeters": self.radius_meters,
            "categories": list(self.categories),
            "limit": self.limit,
            "minRating": self.min_rating,
            "priceLevel": self.price_level,
            "tags": list(self.tags),
            "excludeIds": list(self.exclude_ids),
        }


@dataclass
class PlanningContext:
    """Ephemeral state for one user turn or one round-planner session."""

    history: List[Dict[str, Any]] = field(default_factory=list)
    user_location: Optional[Coordinates] = None
    preferences: Dict[str, Any] = field(default_factory=dict)
    selected: List[Stop] = field(default_factory=list)
    round_number: int = 0

    def exclusion_ids(self) -> List[str]:
        return [s.place_id for s in self.selected if s.place_id]


@dataclass
class PlanResult:
    reply_text: str
    stops: List[Stop] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "reply": self.reply_text,
            "stops": [s.to_dict() for s in self.stops],
            "diagnostics": self.diagnostics,
        }

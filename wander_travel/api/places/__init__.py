"""Tiered place lookup: knowledge store, Google Maps and Mapbox."""

from .gateway import PlaceLookupGateway
from .knowledge_store import InMemoryKnowledgeStore, KnowledgeStore
from .providers import GoogleMapsProvider, MapboxProvider

__all__ = ['PlaceLookupGateway', 'KnowledgeStore', 'InMemoryKnowledgeStore', 'GoogleMapsProvider', 'MapboxProvider']

import asyncio
import json
import threading
from dataclasses import replace
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from wander_travel.api.geocoding import GeoRegion
from wander_travel.api.llm import ChatReply, ToolCall
from wander_travel.api.models import Coordinates, Tier, TravelEstimate
from wander_travel.api.places.knowledge_store import InMemoryKnowledgeStore


def run(coro):
    """Drive a coroutine from a plain pytest test."""
    return asyncio.run(coro)


POI_RECORDS = [
    {"id": "r1", "name": "Taverna Kostas", "primary_type": "restaurant", "latitude": 36.4450,
     "longitude": 28.2270, "rating": 4.6, "price_level": 2, "tags": ["traditional", "terrace"],
     "address": "Sokratous 12, Rhodes", "local_tips": ["Ask for the daily special"]},
    {"id": "r2", "name": "Mandala Cafe", "primary_type": "restaurant", "latitude": 36.4460,
     "longitude": 28.2280, "rating": 4.2, "price_level": 1, "tags": ["casual"]},
    {"id": "r3", "name": "Sunset Grill", "primary_type": "restaurant", "latitude": 36.3000,
     "longitude": 28.1000, "rating": 4.8, "price_level": 3, "tags": ["sunset-view", "romantic"]},
    {"id": "b1", "name": "Elli Beach", "primary_type": "beach", "latitude": 36.4510,
     "longitude": 28.2230, "rating": 4.4, "amenities": ["parking"]},
    {"id": "b2", "name": "Anthony Quinn Bay", "primary_type": "beach", "latitude": 36.3170,
     "longitude": 28.2120, "rating": 4.7},
    {"id": "a1", "name": "Palace of the Grand Master", "primary_type": "attraction", "latitude": 36.4466,
     "longitude": 28.2241, "rating": 4.7, "local_tips": ["Go early to beat the crowds"]},
    {"id": "a2", "name": "Acropolis of Lindos", "primary_type": "attraction", "latitude": 36.0910,
     "longitude": 28.0880, "rating": 4.8},
]

OLD_TOWN = Coordinates(36.4450, 28.2270)


@pytest.fixture
def region():
    return GeoRegion(
        name="Rhodes, Greece",
        north=36.5,
        south=36.0,
        east=28.4,
        west=27.8,
        center=Coordinates(36.4341, 28.2176),
        bias_radius_m=50000,
    )


@pytest.fixture
def store():
    return InMemoryKnowledgeStore(POI_RECORDS)


# --------------------------------------------------------------------------- #
# Test doubles
# --------------------------------------------------------------------------- #

class FakeChatClient:
    """Scripted stand-in for ChatClient.

    ``replies`` feed ``complete``; ``json_replies`` feed ``complete_json``.
    An Exception in either script is raised instead of returned.
    """

    def __init__(self, replies=None, json_replies=None):
        self.replies = list(replies or [])
        self.json_replies = list(json_replies or [])
        self.calls = []
        self.json_calls = []

    async def complete(self, messages, tools=None, **kwargs):
        self.calls.append({"messages": list(messages), "tools": tools})
        item = self.replies.pop(0) if self.replies else ChatReply("")
        if isinstance(item, Exception):
            raise item
        return item

    async def complete_json(self, system_prompt, user_prompt, **kwargs):
        self.json_calls.append({"system": system_prompt, "user": user_prompt, **kwargs})
        item = self.json_replies.pop(0) if self.json_replies else ValueError("no scripted reply")
        if isinstance(item, Exception):
            raise item
        return item


class FakeProvider:
    """Map provider double for the basic / emergency tiers."""

    def __init__(self, tier, places=None, error=None, estimate=None, route_error=None):
        self.tier = tier
        self.name = tier.value
        self.places = places or []
        self.error = error
        self.estimate = estimate
        self.route_error = route_error
        self.search_calls = []
        self.route_calls = []

    async def search_nearby(self, lat, lng, radius, category, limit=10):
        self.search_calls.append((lat, lng, radius, category, limit))
        if self.error:
            raise self.error
        return [replace(p) for p in self.places]

    async def route(self, origin, destination, mode="driving"):
        self.route_calls.append((origin, destination, mode))
        if self.route_error:
            raise self.route_error
        return self.estimate


class FailingStore(InMemoryKnowledgeStore):
    """Knowledge store whose queries all raise."""

    def __init__(self):
        super().__init__(POI_RECORDS)

    async def search_by_type(self, *args, **kwargs):
        raise RuntimeError("database connection lost")

    async def get_nearby(self, *args, **kwargs):
        raise RuntimeError("database connection lost")

    async def search_advanced(self, criteria):
        raise RuntimeError("database connection lost")


class FakeGeocodeProvider:
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.queries = []

    async def lookup(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.result


def tool_call(call_id, name, arguments):
    return ToolCall(id=call_id, name=name, arguments=arguments)


def estimate(meters=1500, seconds=400):
    return TravelEstimate(distance_meters=meters, duration_seconds=seconds)


BASIC = Tier.BASIC
EMERGENCY = Tier.EMERGENCY


# --------------------------------------------------------------------------- #
# Local chat completions endpoint
# --------------------------------------------------------------------------- #

class ChatEndpointHandler(BaseHTTPRequestHandler):
    """Answers every POST with one chat completion carrying ``reply_content``."""

    protocol_version = "HTTP/1.1"  # keep-alive, so the SDK reuses pooled connections
    reply_content = "hello"

    def do_POST(self):
        length = int(self.headers.get("Content-Length") or 0)
        self.server.requests.append(json.loads(self.rfile.read(length) or b"{}"))
        body = json.dumps({
            "id": f"chatcmpl-{len(self.server.requests)}",
            "object": "chat.completion",
            "created": 0,
            "model": "test-model",
            "choices": [{
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": self.server.reply_content},
            }],
        }).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def chat_endpoint():
    """Serve chat completions on localhost; yields the server (``base_url`` set)."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), ChatEndpointHandler)
    server.requests = []
    server.reply_content = ChatEndpointHandler.reply_content
    server.base_url = f"http://127.0.0.1:{server.server_address[1]}/v1"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()

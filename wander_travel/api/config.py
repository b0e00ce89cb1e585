# api/config.py
"""Configuration management for the travel planner API."""
import logging
import os

from dotenv import load_dotenv

from wander_travel.api.errors import FatalConfiguration

load_dotenv()

logger = logging.getLogger(__name__)


def get_openai_api_key():
    """Get OpenAI API key from environment."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise FatalConfiguration("OPENAI_API_KEY not set")
    return api_key


def get_llm_config():
    """Get chat model configuration."""
    return {
        "chat_model": os.getenv("OPENAI_CHAT_MODEL", "gpt-4o"),
        "planner_model": os.getenv("OPENAI_PLANNER_MODEL", "gpt-4o-mini"),
        "temperature": float(os.getenv("LLM_TEMPERATURE", "0.7")),
        "max_tokens": int(os.getenv("LLM_MAX_TOKENS", "2000")),
        "timeout_seconds": float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
        "retry_attempts": int(os.getenv("LLM_RETRY_ATTEMPTS", "3")),
    }


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
    }


def get_mapbox_config():
    """Get Mapbox configuration."""
    return {
        "access_token": os.getenv("MAPBOX_ACCESS_TOKEN", ""),
    }


def get_region_config():
    """Get the service region: bounding box, center and search bias."""
    return {
        "name": os.getenv("REGION_NAME", "Rhodes, Greece"),
        "north": float(os.getenv("REGION_NORTH", "36.5")),
        "south": float(os.getenv("REGION_SOUTH", "36.0")),
        "east": float(os.getenv("REGION_EAST", "28.4")),
        "west": float(os.getenv("REGION_WEST", "27.8")),
        "center_lat": float(os.getenv("REGION_CENTER_LAT", "36.4341")),
        "center_lng": float(os.getenv("REGION_CENTER_LNG", "28.2176")),
        "bias_radius_m": int(os.getenv("REGION_BIAS_RADIUS_M", "50000")),
    }


def get_planner_config():
    """Get pipeline budgets, timeouts and defaults."""
    return {
        "max_iterations": int(os.getenv("PLANNER_MAX_ITERATIONS", "5")),
        "provider_timeout_seconds": float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "8")),
        "geocode_cache_ttl_seconds": int(os.getenv("GEOCODE_CACHE_TTL_SECONDS", str(24 * 60 * 60))),
        "default_radius_m": int(os.getenv("DEFAULT_SEARCH_RADIUS_M", "5000")),
        "default_limit": int(os.getenv("DEFAULT_SEARCH_LIMIT", "15")),
        "knowledge_store_path": os.getenv("KNOWLEDGE_STORE_PATH", ""),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 3000))


def validate_config():
    """Validate configuration at startup.

    Only a missing LLM credential is fatal; the map providers are optional
    and their absence just removes a tier from the lookup chain.
    """
    get_openai_api_key()

    if not get_google_maps_config()["api_key"]:
        logger.warning("GOOGLE_MAPS_API_KEY not set - basic tier and primary geocoder disabled")
    if not get_mapbox_config()["access_token"]:
        logger.warning("MAPBOX_ACCESS_TOKEN not set - emergency tier and secondary geocoder disabled")
    if not get_planner_config()["knowledge_store_path"]:
        logger.warning("KNOWLEDGE_STORE_PATH not set - enhanced tier disabled")

    region = get_region_config()
    if region["south"] >= region["north"] or region["west"] >= region["east"]:
        raise FatalConfiguration("Region bounding box is inverted")
    return True

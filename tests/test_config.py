"""
Unit tests for wander_travel/api/config.py
"""
import pytest

from wander_travel.api import config
from wander_travel.api.errors import FatalConfiguration


class TestValidateConfig:

    def test_missing_openai_key_is_fatal(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(FatalConfiguration):
            config.validate_config()

    def test_fatal_configuration_is_a_value_error(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            config.get_openai_api_key()

    def test_optional_providers_only_warn(self, monkeypatch, caplog):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
        monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)
        assert config.validate_config() is True
        assert "GOOGLE_MAPS_API_KEY not set" in caplog.text

    def test_inverted_region_is_fatal(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("REGION_SOUTH", "37.0")
        with pytest.raises(FatalConfiguration):
            config.validate_config()


class TestGetters:

    def test_region_defaults(self, monkeypatch):
        for key in ("REGION_NORTH", "REGION_SOUTH", "REGION_CENTER_LAT", "REGION_NAME"):
            monkeypatch.delenv(key, raising=False)
        region = config.get_region_config()
        assert region["north"] == 36.5
        assert region["south"] == 36.0
        assert region["center_lat"] == 36.4341
        assert region["name"] == "Rhodes, Greece"

    def test_planner_defaults(self, monkeypatch):
        monkeypatch.delenv("PLANNER_MAX_ITERATIONS", raising=False)
        monkeypatch.delenv("PROVIDER_TIMEOUT_SECONDS", raising=False)
        planner = config.get_planner_config()
        assert planner["max_iterations"] == 5
        assert planner["provider_timeout_seconds"] == 8
        assert planner["geocode_cache_ttl_seconds"] == 86400

    def test_llm_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_CHAT_MODEL", "gpt-test")
        assert config.get_llm_config()["chat_model"] == "gpt-test"

"""
Tests for environment-driven configuration.
"""

from __future__ import annotations

import logging

import pytest

from timeforge.engine.errors import ConfigurationError
from timeforge.shared.config import EngineConfig

ENV_VARS = (
    "TIMEFORGE_TIMEZONE",
    "TIMEFORGE_DEFAULT_FROM",
    "TIMEFORGE_DEFAULT_TO",
    "MCP_TRANSPORT",
    "MCP_HOST",
    "MCP_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestEngineConfigFromEnv:
    def test_defaults(self):
        config = EngineConfig.from_env()
        assert config == EngineConfig()
        assert config.timezone == "UTC"
        assert config.default_range().from_ == "now-1h"

    def test_values_from_env(self, monkeypatch):
        monkeypatch.setenv("TIMEFORGE_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("TIMEFORGE_DEFAULT_FROM", "now-7d/d")
        monkeypatch.setenv("MCP_TRANSPORT", "SSE")
        monkeypatch.setenv("MCP_PORT", "9000")
        config = EngineConfig.from_env()
        assert config.timezone == "Europe/Berlin"
        assert config.default_from == "now-7d/d"
        assert config.transport == "sse"
        assert config.port == 9000

    def test_invalid_values_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv("TIMEFORGE_TIMEZONE", "Not/AZone")
        monkeypatch.setenv("TIMEFORGE_DEFAULT_TO", "later")
        monkeypatch.setenv("MCP_TRANSPORT", "carrier-pigeon")
        monkeypatch.setenv("MCP_PORT", "http")
        with caplog.at_level(logging.WARNING):
            config = EngineConfig.from_env()
        assert config.timezone == "UTC"
        assert config.default_to == "now"
        assert config.transport == "stdio"
        assert config.port == 8080
        assert "TIMEFORGE_TIMEZONE" in caplog.text

    def test_out_of_range_port(self, monkeypatch):
        monkeypatch.setenv("MCP_PORT", "70000")
        assert EngineConfig.from_env().port == 8080

    def test_required_raises(self, monkeypatch):
        monkeypatch.setenv("TIMEFORGE_TIMEZONE", "Not/AZone")
        with pytest.raises(ConfigurationError) as excinfo:
            EngineConfig.from_env(required=True)
        assert excinfo.value.field == "timezone"

    def test_resolve_timezone(self):
        config = EngineConfig(timezone="Asia/Tokyo")
        assert config.resolve_timezone(None) == "Asia/Tokyo"
        assert config.resolve_timezone(" ") == "Asia/Tokyo"
        assert config.resolve_timezone("UTC") == "UTC"

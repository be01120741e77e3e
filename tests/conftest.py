from __future__ import annotations

import pytest

from chat_relay.config import Settings
from chat_relay.plugins import default_plugins
from chat_relay.tool_registry import ToolRegistry


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep a developer's real credentials out of the tests."""
    for name in (
        "ANTHROPIC_API_KEY",
        "ANTHROPIC_BASE_URL",
        "ANTHROPIC_VERSION",
        "CHAT_RELAY_MODEL",
        "CHAT_RELAY_MAX_TOKENS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry.from_plugins(default_plugins())


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", base_url="https://upstream.test/v1", model="test-model")

"""Pytest configuration and fixtures."""

import pytest


@pytest.fixture(autouse=True)
def relay_settings(monkeypatch):
    """Point the relay at a fake upstream and isolate settings for all tests."""
    monkeypatch.setenv("RELAY_LLM_ENDPOINT", "http://upstream.test/v1/chat/completions")
    monkeypatch.setenv("RELAY_LLM_TOKEN", "test-token")
    monkeypatch.setenv("RELAY_LLM_MODEL", "test-model")
    monkeypatch.setenv("RELAY_PINGDOM_API_TOKEN", "")
    monkeypatch.setenv("RELAY_PROBE_TARGET_HOST", "")
    monkeypatch.delenv("RELAY_REGIONS_PATH", raising=False)

    # Clear the lru_cache for settings
    from relay.config.settings import get_settings

    get_settings.cache_clear()

    yield get_settings()

    get_settings.cache_clear()


class SteppingClock:
    """Deterministic clock that advances by a fixed step on every call."""

    def __init__(self, step: float = 0.5):
        self.step = step
        self.calls = 0

    def __call__(self) -> float:
        value = self.calls * self.step
        self.calls += 1
        return value


@pytest.fixture
def stepping_clock():
    """Clock returning 0.0, 0.5, 1.0, ... seconds."""
    return SteppingClock()

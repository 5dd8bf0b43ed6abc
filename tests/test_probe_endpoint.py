"""Tests for the /probe endpoint."""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from relay.config.settings import get_settings
from relay.main import app


@pytest.fixture
def pingdom_api(monkeypatch):
    """Route the app's shared HTTP client to a fake Pingdom API."""
    seen: list[httpx.Request] = []
    state = {"probes_status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/probes"):
            if state["probes_status"] != 200:
                return httpx.Response(state["probes_status"], text="invalid token")
            return httpx.Response(
                200,
                json={
                    "probes": [
                        {"id": 1, "country": "Germany", "name": "Frankfurt"},
                        {"id": 2, "country": "Japan", "name": "Tokyo"},
                    ]
                },
            )
        probe_id = int(request.url.params["probeid"])
        if probe_id == 2:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(
            200, json={"result": {"status": "up", "responsetime": 120, "probedesc": "Frankfurt"}}
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(app.state, "http_client", http_client, raising=False)
    return seen, state


@pytest.fixture
async def client():
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestProbeEndpoint:
    """Tests for GET /probe."""

    async def test_token_required(self, client, pingdom_api):
        """Test that a missing token is a 400."""
        response = await client.get("/probe", params={"host": "relay.example.com"})

        assert response.status_code == 400
        assert response.json() == {"error": "Pingdom API token is required"}

    async def test_host_required(self, client, pingdom_api):
        """Test that a missing host is a 400."""
        response = await client.get("/probe", params={"token": "pd-token"})

        assert response.status_code == 400
        assert response.json() == {"error": "Target host is required"}

    async def test_report(self, client, pingdom_api):
        """Test a successful run rendered as indented JSON."""
        seen, _ = pingdom_api

        response = await client.get(
            "/probe", params={"token": "pd-token", "host": "relay.example.com", "path": "/hi"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.text.startswith("{\n  ")
        report = response.json()
        assert report["target"] == {
            "host": "relay.example.com",
            "path": "/hi",
            "url": "https://relay.example.com/hi",
        }
        assert report["stats"]["count"] == 1
        assert report["stats"]["by_region"]["Europe"]["max"] == 120
        results = {r["probe_id"]: r for r in report["results"]}
        assert results[1]["region"] == "Europe"
        assert "error" not in results[1]
        assert results[2]["error"] == "API error: 503 - unavailable"
        assert "response_time" not in results[2]
        assert seen[0].headers["Authorization"] == "Bearer pd-token"

    async def test_configured_defaults(self, client, pingdom_api, monkeypatch):
        """Test that token, host and path fall back to settings."""
        seen, _ = pingdom_api
        monkeypatch.setenv("RELAY_PINGDOM_API_TOKEN", "configured-token")
        monkeypatch.setenv("RELAY_PROBE_TARGET_HOST", "configured.example.com")
        get_settings.cache_clear()

        response = await client.get("/probe")

        assert response.status_code == 200
        assert response.json()["target"]["url"] == "https://configured.example.com/"
        assert seen[0].headers["Authorization"] == "Bearer configured-token"

    async def test_listing_failure(self, client, pingdom_api):
        """Test that a failed probe listing is a 500 with the error."""
        _, state = pingdom_api
        state["probes_status"] = 401

        response = await client.get("/probe", params={"token": "bad", "host": "h"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch probes: 401 - invalid token"}

"""Tests for rate limiting behaviour."""

import pytest
from fastapi.testclient import TestClient

from playscanner.main import create_app
from tests.mocks.models import future_day

BASE = "/api/playscanner"


class TestRateLimiting:
    """Verify that rate limiting kicks in for the expensive endpoints."""

    @pytest.fixture()
    def limited_client(self, services):
        """
        TestClient with rate limiting **enabled** (unlike the default
        `client` fixture which disables it for convenience).
        """
        from playscanner.rate_limit import limiter

        limiter.enabled = True
        # Reset in-memory state so previous tests don't pollute counts
        limiter.reset()

        with TestClient(create_app(services=services), raise_server_exceptions=False) as tc:
            yield tc

        limiter.enabled = False

    def test_collect_rate_limit(self, limited_client, auth_headers):
        """POST /collect is limited to 5 requests/minute."""
        for i in range(5):
            resp = limited_client.post(f"{BASE}/collect", headers=auth_headers)
            assert resp.status_code == 200, f"Request {i + 1} should succeed"

        # 6th request should be rate-limited
        resp = limited_client.post(f"{BASE}/collect", headers=auth_headers)
        assert resp.status_code == 429
        data = resp.json()
        assert data["code"] == "RATE_LIMITED"
        assert "Rate limit exceeded" in data["error"]

    def test_search_rate_limit(self, limited_client):
        """POST /search is limited to 30 requests/minute."""
        body = {"sport": "padel", "location": "London", "date": future_day().isoformat()}
        for i in range(30):
            resp = limited_client.post(f"{BASE}/search", json=body)
            assert resp.status_code == 200, f"Request {i + 1} should not be rate-limited"

        resp = limited_client.post(f"{BASE}/search", json=body)
        assert resp.status_code == 429

    def test_health_not_limited_at_low_volume(self, limited_client):
        """GET /health at low volume should not be rate-limited."""
        for _ in range(10):
            resp = limited_client.get(f"{BASE}/health")
            assert resp.status_code != 429

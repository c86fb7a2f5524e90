"""
tests/test_health.py -- Integration tests for GET /health and GET /.

Covers:
  - 200 response with status and version
  - No authentication required
  - Index lists the endpoints and how to authenticate
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_version(api_client):
    """Health endpoint returns 200 with status and version."""
    resp = api_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_client.get("/health", headers={})
    assert resp.status_code == 200


def test_index_describes_api(api_client):
    """GET / lists user and task endpoints plus the token header format."""
    data = api_client.get("/").json()
    assert data["success"] is True
    assert "Bearer" in data["authentication"]
    assert set(data["endpoints"]) == {"users", "tasks"}


def test_unknown_route_is_structured_404(api_client):
    """Unknown paths return the error envelope rather than FastAPI's default body."""
    resp = api_client.get("/no-such-route")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Route not found", "code": "NOT_FOUND"}


def test_untrusted_host_rejected(api_client):
    """Requests with a Host header outside ALLOWED_HOSTS are refused."""
    resp = api_client.get("/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400

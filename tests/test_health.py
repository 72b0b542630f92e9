"""
tests/test_health.py -- Integration tests for the liveness endpoints.

Covers:
  - GET /api/v1/health: 200 with status, version and components
  - GET /ping: 200 pong
  - Neither requires a session
  - Unknown routes use the shared error envelope
"""

from __future__ import annotations


def test_health_returns_200_with_components(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_ping(client):
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.json() == {"message": "pong"}


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/v1/does-not-exist")
    assert resp.status_code == 404

"""Tests for the HTTP middleware stack."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from listeners_club.http_api.rate_limiter import RateLimitMiddleware


def _app(limit):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, max_requests_per_minute=limit)

    @app.get("/api/ping")
    async def ping():
        return {"ok": True}

    @app.get("/api/health")
    async def health():
        return {"status": "healthy"}

    return app


def test_requests_over_limit_are_rejected():
    client = TestClient(_app(2))

    statuses = [client.get("/api/ping").status_code for _ in range(3)]

    assert statuses == [200, 200, 429]


def test_health_is_exempt():
    client = TestClient(_app(1))

    statuses = [client.get("/api/health").status_code for _ in range(3)]

    assert statuses == [200, 200, 200]


def test_zero_disables_limiting():
    client = TestClient(_app(0))

    assert all(client.get("/api/ping").status_code == 200 for _ in range(5))


def test_health_endpoint(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_reports_unreachable_database(client, db, monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionError("no server")

    monkeypatch.setattr(db, "command", refuse)

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["database"] == "unavailable"

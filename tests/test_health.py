"""Smoke tests for health and app wiring."""

import pytest
from httpx import ASGITransport, AsyncClient

from menuboard.core.config import get_settings
from menuboard.main import create_app


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_provider_health_ok(client: AsyncClient) -> None:
    """GET /api/v1/health/providers returns 200 when the local provider is healthy."""
    response = await client.get("/api/v1/health/providers")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "providers": {"local": {"healthy": True, "error": None}},
    }


async def test_provider_health_degraded_without_providers(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """With every provider disabled the endpoint returns 503 and status degraded."""
    monkeypatch.setenv("UPLOAD_LOCAL_ENABLED", "false")
    get_settings.cache_clear()
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/api/v1/health/providers")
    assert response.status_code == 503
    assert response.json() == {"status": "degraded", "providers": {}}


async def test_unknown_route_returns_json_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "HTTP_ERROR"

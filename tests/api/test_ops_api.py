import pytest

from inkwell.settings import settings


@pytest.mark.asyncio
async def test_liveness(api_client):
    response = await api_client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readiness_with_memory_backend(api_client):
    response = await api_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["postgres"]["backend"] == "memory"


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    monkeypatch.setattr(settings, "obs_admin_token", "s3cret")

    denied = await api_client.get("/metrics")
    allowed = await api_client.get("/metrics", headers={"X-Admin-Token": "s3cret"})

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert "inkwell_" in allowed.text


@pytest.mark.asyncio
async def test_responses_carry_request_id(api_client):
    response = await api_client.get("/health/live", headers={"X-Request-Id": "req-123"})

    assert response.headers.get("X-Request-Id") == "req-123"

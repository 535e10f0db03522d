import pytest

from marketplace.infra.redis import set_redis_client
from marketplace.settings import settings


@pytest.mark.asyncio
async def test_liveness(api_client):
	resp = await api_client.get("/health/live")

	assert resp.status_code == 200
	assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readiness_round_trips_redis(api_client, fake_redis):
	resp = await api_client.get("/health/ready")

	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert body["checks"]["redis"]["ok"] is True
	assert await fake_redis.get("health_check") == "ok"


@pytest.mark.asyncio
async def test_readiness_degraded_without_redis(api_client):
	set_redis_client(None)

	resp = await api_client.get("/health/ready")

	assert resp.status_code == 503
	assert resp.json()["checks"]["redis"] == {"ok": False, "error": "redis_client_unavailable"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(api_client):
	resp = await api_client.get("/health/live", headers={"X-Request-Id": "req-123"})

	assert resp.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client, monkeypatch):
	monkeypatch.setattr(settings, "obs_metrics_public", False)
	monkeypatch.setattr(settings, "obs_admin_token", "ops-secret")

	denied = await api_client.get("/metrics")
	allowed = await api_client.get("/metrics", headers={"X-Admin-Token": "ops-secret"})

	assert denied.status_code == 403
	assert allowed.status_code == 200
	assert "marketplace_presence_announce_total" in allowed.text


@pytest.mark.asyncio
async def test_metrics_public_when_configured(api_client, monkeypatch):
	monkeypatch.setattr(settings, "obs_metrics_public", True)

	resp = await api_client.get("/metrics")

	assert resp.status_code == 200

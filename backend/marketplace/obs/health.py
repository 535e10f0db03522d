"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from marketplace.infra.redis import redis_client
from marketplace.obs import metrics

LOGGER = logging.getLogger(__name__)

HEALTH_KEY = "health_check"


async def _redis_status(timeout: float = 0.5) -> Dict[str, Any]:
	if not redis_client.available:
		metrics.mark_redis(False)
		return {"ok": False, "error": "redis_client_unavailable"}
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.set(HEALTH_KEY, "ok"), timeout=timeout)
		value = await asyncio.wait_for(redis_client.get(HEALTH_KEY), timeout=timeout)
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.mark_redis(False)
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}
	latency = perf_counter() - start
	if value != "ok":
		metrics.mark_redis(False)
		return {"ok": False, "error": "round_trip_mismatch"}
	metrics.mark_redis(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	redis_state = await _redis_status()
	ok = bool(redis_state.get("ok"))
	return (
		200 if ok else 503,
		{
			"status": "ok" if ok else "degraded",
			"checks": {"redis": redis_state},
		},
	)

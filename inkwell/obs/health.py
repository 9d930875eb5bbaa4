"""Liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Tuple

from inkwell.infra import postgres
from inkwell.infra.redis import redis_client
from inkwell.obs import metrics
from inkwell.settings import settings

LOGGER = logging.getLogger(__name__)


async def _probe(name: str, check: Callable[[], Awaitable[Any]], mark: Callable[[bool], None]) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await check()
	except Exception as exc:  # pragma: no cover - depends on runtime
		mark(False)
		LOGGER.warning("readiness_check_failed", extra={"dependency": name}, exc_info=True)
		return {"ok": False, "error": str(exc)}
	mark(True)
	return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}


async def _ping_redis() -> None:
	await asyncio.wait_for(redis_client.ping(), timeout=0.2)


async def _ping_postgres() -> None:
	pool = await postgres.get_pool()
	async with pool.acquire() as conn:
		await asyncio.wait_for(conn.execute("SELECT 1"), timeout=0.3)


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	"""Redis backs feed sessions and chat throttling, so it gates readiness too."""
	checks = {"redis": await _probe("redis", _ping_redis, metrics.mark_redis)}
	if settings.uses_memory_store():
		checks["postgres"] = {"ok": True, "backend": "memory"}
	else:
		checks["postgres"] = await _probe("postgres", _ping_postgres, metrics.mark_postgres)
	ok = all(state["ok"] for state in checks.values())
	return (200 if ok else 503, {"status": "ok" if ok else "degraded", "checks": checks})

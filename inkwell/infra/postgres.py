"""AsyncPG pool management and the thin query gateway used by repositories."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import asyncpg

from inkwell.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None

# Failures a caller may report as "storage unavailable" rather than a bug.
PERSISTENCE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None


class Gateway:
	"""Executes parameterized queries against the shared pool.

	Owns no logic beyond transport: every call acquires a connection, runs one
	statement and releases it.
	"""

	def __init__(self, pool: Optional[asyncpg.pool.Pool] = None) -> None:
		self._pool = pool

	async def _resolve_pool(self) -> asyncpg.pool.Pool:
		if self._pool is not None:
			return self._pool
		return await get_pool()

	async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
		pool = await self._resolve_pool()
		async with pool.acquire() as conn:
			return await conn.fetch(query, *args)

	async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
		pool = await self._resolve_pool()
		async with pool.acquire() as conn:
			return await conn.fetchrow(query, *args)

	async def fetchval(self, query: str, *args: Any) -> Any:
		pool = await self._resolve_pool()
		async with pool.acquire() as conn:
			return await conn.fetchval(query, *args)

	async def execute(self, query: str, *args: Any) -> str:
		pool = await self._resolve_pool()
		async with pool.acquire() as conn:
			return await conn.execute(query, *args)


def affected_rows(status: str) -> int:
	"""Parse the row count from an asyncpg command status such as ``UPDATE 3``."""
	try:
		return int(status.rsplit(" ", 1)[-1])
	except (ValueError, AttributeError):
		return 0

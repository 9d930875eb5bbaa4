"""Fixed-window counters in redis, keyed per action and actor."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from inkwell.infra.redis import redis_client


@dataclass(frozen=True, slots=True)
class WindowHit:
	count: int
	limit: int
	reset_in: int

	@property
	def allowed(self) -> bool:
		return self.count <= self.limit


def window_key(kind: str, actor_id: str, window: int, now: float) -> str:
	return f"rl:{kind}:{actor_id}:{int(now // window)}:{window}"


async def hit(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> WindowHit:
	"""Count one action in the current window and report where the actor stands."""
	window = max(1, int(window_seconds))
	current = time.time() if now is None else now
	key = window_key(kind, actor_id, window, current)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		count, _ = await pipe.execute()
	return WindowHit(count=int(count), limit=limit, reset_in=window - int(current % window))


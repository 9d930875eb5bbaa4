"""Redis persistence for feed session state."""

from __future__ import annotations

import uuid
from typing import Optional

from inkwell.infra.redis import redis_client
from inkwell.settings import settings

from .state import FeedPageState


def new_session_id() -> str:
	return uuid.uuid4().hex


class FeedSessionStore:
	def __init__(self, client=None, *, ttl_seconds: Optional[int] = None) -> None:
		self._client = client or redis_client
		self._ttl = ttl_seconds or settings.feed_session_ttl_seconds

	@staticmethod
	def key(viewer_id: int, session_id: str) -> str:
		return f"feed:session:{viewer_id}:{session_id}"

	async def load(self, viewer_id: int, session_id: str) -> Optional[FeedPageState]:
		raw = await self._client.get(self.key(viewer_id, session_id))
		if raw is None:
			return None
		if isinstance(raw, bytes):
			raw = raw.decode()
		return FeedPageState.from_json(raw)

	async def save(self, viewer_id: int, session_id: str, state: FeedPageState) -> None:
		await self._client.set(self.key(viewer_id, session_id), state.to_json(), ex=self._ttl)


"""Feed pages for the authenticated viewer, with sessions kept in redis."""

from __future__ import annotations

import logging
from typing import Optional

from redis.exceptions import RedisError

from inkwell.domain.errors import UpstreamUnavailable
from inkwell.domain.posts.repo import PostRepository, post_repository
from inkwell.domain.posts.schemas import PostResponse
from inkwell.infra.auth import AuthenticatedUser
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

from .assembler import FeedAssembler
from .schemas import FeedResponse
from .sessions import FeedSessionStore, new_session_id
from .state import FeedPageState

logger = logging.getLogger(__name__)


class FeedService:
	def __init__(
		self,
		repository: Optional[PostRepository] = None,
		sessions: Optional[FeedSessionStore] = None,
	) -> None:
		self._assembler = FeedAssembler(
			repository or post_repository(),
			page_size=settings.feed_source_page_size,
			floor=settings.feed_floor,
			buffer=settings.feed_global_buffer,
		)
		self._sessions = sessions or FeedSessionStore()

	async def get_page(self, auth_user: AuthenticatedUser, session_id: Optional[str] = None) -> FeedResponse:
		state: Optional[FeedPageState] = None
		try:
			if session_id:
				state = await self._sessions.load(auth_user.id, session_id)
				if state is None:
					logger.info("feed_session_expired", extra={"viewer_id": auth_user.id})
			if state is None:
				session_id = new_session_id()
				state = FeedPageState()
			page = await self._assembler.assemble(auth_user.id, state)
			await self._sessions.save(auth_user.id, session_id, page.state)
		except RedisError as exc:
			logger.error("feed_session_store_failed", extra={"viewer_id": auth_user.id}, exc_info=True)
			raise UpstreamUnavailable("feed_session_unavailable") from exc
		obs_metrics.inc_feed_page("first" if page.state.pages_served == 1 else "more")
		return FeedResponse(
			session_id=session_id,
			page=page.state.pages_served,
			posts=[PostResponse.from_record(item) for item in page.items],
			has_more=page.has_more,
		)

"""Merges own, followed and global posts into deduplicated feed pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from inkwell.domain.errors import UpstreamUnavailable
from inkwell.domain.posts.models import PostRecord
from inkwell.domain.posts.repo import PostRepository
from inkwell.infra.postgres import PERSISTENCE_ERRORS
from inkwell.obs import metrics as obs_metrics

from .state import PRIORITY, FeedPageState, FeedSource

logger = logging.getLogger(__name__)


@dataclass
class FeedPage:
	items: List[PostRecord]
	state: FeedPageState
	has_more: bool
	fallback: bool = False


class FeedAssembler:
	"""Builds feed pages from three prioritised sources.

	The first page takes ``page_size`` own posts, then ``page_size`` followed
	posts, then tops up from the global source when fewer than ``floor`` items
	were found, asking for ``floor - found + buffer`` rows. Later pages take
	one page from every source that is not yet exhausted. Every id handed out
	is recorded in ``state.seen`` and never returned again for that session.
	"""

	def __init__(
		self,
		repository: PostRepository,
		*,
		page_size: int = 5,
		floor: int = 5,
		buffer: int = 5,
	) -> None:
		self._repo = repository
		self._page_size = page_size
		self._floor = floor
		self._buffer = buffer

	async def _query(self, source: FeedSource, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		if source is FeedSource.OWN:
			return await self._repo.list_own(viewer_id, limit=limit, offset=offset)
		if source is FeedSource.FOLLOWING:
			return await self._repo.list_following(viewer_id, limit=limit, offset=offset)
		return await self._repo.list_global(viewer_id, limit=limit, offset=offset)

	async def _fetch(self, source: FeedSource, viewer_id: int, state: FeedPageState, limit: int) -> List[PostRecord]:
		cursor = state.cursors[source]
		if cursor.exhausted or limit <= 0:
			return []
		try:
			rows = await self._query(source, viewer_id, limit=limit, offset=cursor.offset)
		except PERSISTENCE_ERRORS:
			logger.warning("feed_source_failed", extra={"source": source.value}, exc_info=True)
			obs_metrics.inc_feed_source_error(source.value)
			return []
		cursor.advance(limit, len(rows))
		return rows

	@staticmethod
	def _take(rows: List[PostRecord], state: FeedPageState, items: List[PostRecord]) -> None:
		for row in rows:
			if row.id in state.seen:
				continue
			state.seen.add(row.id)
			items.append(row)

	async def assemble(self, viewer_id: int, state: Optional[FeedPageState] = None) -> FeedPage:
		state = state or FeedPageState()
		fallback = False
		if state.pages_served == 0:
			items, fallback = await self._first_page(viewer_id, state)
		else:
			items = await self._load_more(viewer_id, state)
		state.pages_served += 1
		return FeedPage(items=items, state=state, has_more=state.has_more, fallback=fallback)

	async def _first_page(self, viewer_id: int, state: FeedPageState) -> tuple[List[PostRecord], bool]:
		items: List[PostRecord] = []
		self._take(await self._fetch(FeedSource.OWN, viewer_id, state, self._page_size), state, items)
		self._take(await self._fetch(FeedSource.FOLLOWING, viewer_id, state, self._page_size), state, items)
		if len(items) < self._floor:
			wanted = max(0, self._floor - len(items)) + self._buffer
			self._take(await self._fetch(FeedSource.GLOBAL, viewer_id, state, wanted), state, items)
		if items:
			return items, False

		# Last resort: a plain global read outside the cursors.
		try:
			rows = await self._repo.list_global(viewer_id, limit=self._page_size, offset=0)
		except PERSISTENCE_ERRORS as exc:
			logger.error("feed_fallback_failed", exc_info=True)
			raise UpstreamUnavailable("feed_unavailable") from exc
		obs_metrics.inc_feed_fallback()
		self._take(rows, state, items)
		return items, True

	async def _load_more(self, viewer_id: int, state: FeedPageState) -> List[PostRecord]:
		items: List[PostRecord] = []
		for source in PRIORITY:
			self._take(await self._fetch(source, viewer_id, state, self._page_size), state, items)
		return items

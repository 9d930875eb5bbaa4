"""Listing and relevance search over published posts."""

from __future__ import annotations

import logging
from typing import List, Optional

from inkwell.domain.posts.repo import PostRepository, post_repository
from inkwell.domain.posts.schemas import PostResponse
from inkwell.infra.auth import AuthenticatedUser
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

from .query import SearchCriteria

logger = logging.getLogger(__name__)


def clamp_limit(limit: Optional[int]) -> int:
	if limit is None or limit < 1:
		return settings.search_default_page_size
	return min(limit, settings.search_max_page_size)


class SearchService:
	def __init__(self, repository: Optional[PostRepository] = None) -> None:
		self._repo = repository or post_repository()

	async def search_posts(
		self,
		viewer: Optional[AuthenticatedUser],
		*,
		title: Optional[str] = None,
		author: Optional[str] = None,
		search: Optional[str] = None,
		tag: Optional[str] = None,
		page: int = 1,
		limit: Optional[int] = None,
	) -> List[PostResponse]:
		criteria = SearchCriteria.resolve(
			title=title,
			author=author,
			search=search,
			tag=tag,
			page=page,
			limit=clamp_limit(limit),
		)
		obs_metrics.inc_search_query(criteria.intent.value)
		rows = await self._repo.search(criteria, viewer.id if viewer else None)
		logger.debug(
			"post_search",
			extra={"intent": criteria.intent.value, "tagged": bool(criteria.tag), "results": len(rows)},
		)
		return [PostResponse.from_record(row) for row in rows]

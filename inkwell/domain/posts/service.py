"""Post authoring, likes, comments and tag listings."""

from __future__ import annotations

import logging
from typing import List, Optional

from inkwell.domain.errors import NotAuthorized, NotFound, ValidationFailed
from inkwell.infra.auth import AuthenticatedUser

from .models import PostRecord, normalize_tags
from .repo import PostRepository, post_repository
from .schemas import (
	CommentCreateRequest,
	CommentResponse,
	LikeResponse,
	PostCreateRequest,
	PostResponse,
	PostUpdateRequest,
	TagCountResponse,
)

logger = logging.getLogger(__name__)

COMMENTS_PAGE_SIZE = 20
POPULAR_TAGS_LIMIT = 20


def _viewer_id(viewer: Optional[AuthenticatedUser]) -> Optional[int]:
	return viewer.id if viewer is not None else None


def _required(value: Optional[str], reason: str) -> str:
	text = (value or "").strip()
	if not text:
		raise ValidationFailed(reason)
	return text


class PostService:
	def __init__(self, repository: Optional[PostRepository] = None) -> None:
		self._repo = repository or post_repository()

	@property
	def repository(self) -> PostRepository:
		return self._repo

	async def _visible(self, post_id: int, viewer: Optional[AuthenticatedUser]) -> PostRecord:
		post = await self._repo.get_post(post_id, _viewer_id(viewer))
		if post is None or not post.visible_to(_viewer_id(viewer)):
			raise NotFound("post_not_found")
		return post

	async def _owned(self, post_id: int, auth_user: AuthenticatedUser) -> PostRecord:
		post = await self._visible(post_id, auth_user)
		if post.user_id != auth_user.id:
			raise NotAuthorized("not_authorized")
		return post

	async def create_post(self, auth_user: AuthenticatedUser, payload: PostCreateRequest) -> PostResponse:
		post = await self._repo.create_post(
			auth_user.id,
			title=_required(payload.title, "title_required"),
			content=_required(payload.content, "content_required"),
			tags=normalize_tags(payload.tags),
			is_published=payload.is_published,
		)
		logger.info("post_created", extra={"post_id": post.id, "published": post.is_published})
		return PostResponse.from_record(post)

	async def get_post(self, post_id: int, viewer: Optional[AuthenticatedUser]) -> PostResponse:
		return PostResponse.from_record(await self._visible(post_id, viewer))

	async def update_post(
		self, auth_user: AuthenticatedUser, post_id: int, payload: PostUpdateRequest
	) -> PostResponse:
		post = await self._owned(post_id, auth_user)
		if payload.is_published is False and post.is_published:
			raise ValidationFailed("cannot_unpublish")
		title = _required(payload.title, "title_required") if payload.title is not None else None
		content = _required(payload.content, "content_required") if payload.content is not None else None
		tags = normalize_tags(payload.tags) if payload.tags is not None else None
		await self._repo.update_post(
			post_id,
			title=title,
			content=content,
			tags=tags,
			is_published=payload.is_published,
		)
		updated = await self._repo.get_post(post_id, auth_user.id)
		if updated is None:
			raise NotFound("post_not_found")
		return PostResponse.from_record(updated)

	async def delete_post(self, auth_user: AuthenticatedUser, post_id: int) -> None:
		await self._owned(post_id, auth_user)
		await self._repo.delete_post(post_id)
		logger.info("post_deleted", extra={"post_id": post_id})

	async def like_post(self, auth_user: AuthenticatedUser, post_id: int) -> LikeResponse:
		await self._visible(post_id, auth_user)
		await self._repo.like(post_id, auth_user.id)
		post = await self._visible(post_id, auth_user)
		return LikeResponse(post_id=post_id, liked=True, likes_count=post.likes_count)

	async def unlike_post(self, auth_user: AuthenticatedUser, post_id: int) -> LikeResponse:
		await self._visible(post_id, auth_user)
		await self._repo.unlike(post_id, auth_user.id)
		post = await self._visible(post_id, auth_user)
		return LikeResponse(post_id=post_id, liked=False, likes_count=post.likes_count)

	async def list_comments(
		self,
		post_id: int,
		viewer: Optional[AuthenticatedUser],
		*,
		page: int = 1,
		limit: int = COMMENTS_PAGE_SIZE,
	) -> List[CommentResponse]:
		await self._visible(post_id, viewer)
		rows = await self._repo.list_comments(post_id, limit=limit, offset=(page - 1) * limit)
		return [CommentResponse.from_record(row) for row in rows]

	async def add_comment(
		self, auth_user: AuthenticatedUser, post_id: int, payload: CommentCreateRequest
	) -> CommentResponse:
		content = _required(payload.content, "content_required")
		await self._visible(post_id, auth_user)
		comment = await self._repo.add_comment(post_id, auth_user.id, content)
		return CommentResponse.from_record(comment)

	async def popular_tags(self, limit: int = POPULAR_TAGS_LIMIT) -> List[TagCountResponse]:
		return [TagCountResponse.from_model(item) for item in await self._repo.popular_tags(limit)]

	async def list_drafts(self, auth_user: AuthenticatedUser, *, page: int, limit: int) -> List[PostResponse]:
		rows = await self._repo.list_drafts(auth_user.id, limit=limit, offset=(page - 1) * limit)
		return [PostResponse.from_record(row) for row in rows]

	async def list_following(self, auth_user: AuthenticatedUser, *, page: int, limit: int) -> List[PostResponse]:
		rows = await self._repo.list_following(auth_user.id, limit=limit, offset=(page - 1) * limit)
		return [PostResponse.from_record(row) for row in rows]

	async def list_by_author(
		self, author_id: int, viewer: Optional[AuthenticatedUser], *, page: int, limit: int
	) -> List[PostResponse]:
		rows = await self._repo.list_by_author(
			author_id, _viewer_id(viewer), limit=limit, offset=(page - 1) * limit
		)
		return [PostResponse.from_record(row) for row in rows]

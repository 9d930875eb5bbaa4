"""FastAPI endpoints for posts, listings, search and the feed."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from inkwell.domain.feed.schemas import FeedResponse
from inkwell.domain.feed.service import FeedService
from inkwell.domain.posts import PostService
from inkwell.domain.posts.schemas import (
	CommentCreateRequest,
	CommentResponse,
	LikeResponse,
	PostCreateRequest,
	PostResponse,
	PostUpdateRequest,
	TagCountResponse,
)
from inkwell.domain.search.service import SearchService
from inkwell.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(prefix="/posts", tags=["posts"])


def get_post_service() -> PostService:
	return PostService()


def get_search_service() -> SearchService:
	return SearchService()


def get_feed_service() -> FeedService:
	return FeedService()


@router.get("", response_model=List[PostResponse])
async def list_posts(
	page: int = Query(default=1, ge=1),
	limit: Optional[int] = Query(default=None, ge=1),
	tag: Optional[str] = Query(default=None),
	search: Optional[str] = Query(default=None),
	title: Optional[str] = Query(default=None),
	author: Optional[str] = Query(default=None),
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: SearchService = Depends(get_search_service),
) -> List[PostResponse]:
	return await service.search_posts(
		viewer,
		title=title,
		author=author,
		search=search,
		tag=tag,
		page=page,
		limit=limit,
	)


@router.get("/feed", response_model=FeedResponse)
async def feed(
	session_id: Optional[str] = Query(default=None, max_length=64),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
	return await service.get_page(auth_user, session_id)


@router.get("/following", response_model=List[PostResponse])
async def following_posts(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=50),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> List[PostResponse]:
	return await service.list_following(auth_user, page=page, limit=limit)


@router.get("/drafts", response_model=List[PostResponse])
async def drafts(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=50),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> List[PostResponse]:
	return await service.list_drafts(auth_user, page=page, limit=limit)


@router.get("/tags/popular", response_model=List[TagCountResponse])
async def popular_tags(service: PostService = Depends(get_post_service)) -> List[TagCountResponse]:
	return await service.popular_tags()


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
	payload: PostCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> PostResponse:
	return await service.create_post(auth_user, payload)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
	post_id: int,
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PostService = Depends(get_post_service),
) -> PostResponse:
	return await service.get_post(post_id, viewer)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
	post_id: int,
	payload: PostUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> PostResponse:
	return await service.update_post(auth_user, post_id, payload)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
	post_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> Response:
	await service.delete_post(auth_user, post_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post(
	post_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> LikeResponse:
	return await service.like_post(auth_user, post_id)


@router.delete("/{post_id}/like", response_model=LikeResponse)
async def unlike_post(
	post_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> LikeResponse:
	return await service.unlike_post(auth_user, post_id)


@router.get("/{post_id}/comments", response_model=List[CommentResponse])
async def list_comments(
	post_id: int,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: PostService = Depends(get_post_service),
) -> List[CommentResponse]:
	return await service.list_comments(post_id, viewer, page=page, limit=limit)


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
	post_id: int,
	payload: CommentCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PostService = Depends(get_post_service),
) -> CommentResponse:
	return await service.add_comment(auth_user, post_id, payload)

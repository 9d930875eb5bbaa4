"""FastAPI endpoints for profiles and the follow graph."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from inkwell.domain.posts import PostService
from inkwell.domain.posts.schemas import PostResponse
from inkwell.domain.social import SocialService
from inkwell.domain.social.schemas import FollowResponse, ProfileResponse, ProfileUpdateRequest, UserSummary
from inkwell.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(prefix="/users", tags=["users"])


def get_social_service() -> SocialService:
	return SocialService()


def get_post_service() -> PostService:
	return PostService()


@router.get("/search/{query}", response_model=List[UserSummary])
async def search_users(
	query: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=50),
	service: SocialService = Depends(get_social_service),
) -> List[UserSummary]:
	return await service.search_users(query, page=page, limit=limit)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
	payload: ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SocialService = Depends(get_social_service),
) -> ProfileResponse:
	return await service.update_profile(auth_user, payload)


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
	username: str,
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	service: SocialService = Depends(get_social_service),
) -> ProfileResponse:
	return await service.get_profile(username, viewer)


@router.get("/{username}/posts", response_model=List[PostResponse])
async def user_posts(
	username: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=50),
	viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
	social: SocialService = Depends(get_social_service),
	posts: PostService = Depends(get_post_service),
) -> List[PostResponse]:
	user = await social.require_user(username)
	return await posts.list_by_author(user.id, viewer, page=page, limit=limit)


@router.get("/{username}/followers", response_model=List[UserSummary])
async def followers(
	username: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	service: SocialService = Depends(get_social_service),
) -> List[UserSummary]:
	return await service.list_followers(username, page=page, limit=limit)


@router.get("/{username}/following", response_model=List[UserSummary])
async def following(
	username: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	service: SocialService = Depends(get_social_service),
) -> List[UserSummary]:
	return await service.list_following(username, page=page, limit=limit)


@router.post("/{user_id}/follow", response_model=FollowResponse)
async def follow(
	user_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SocialService = Depends(get_social_service),
) -> FollowResponse:
	return await service.follow(auth_user, user_id)


@router.delete("/{user_id}/follow", response_model=FollowResponse)
async def unfollow(
	user_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SocialService = Depends(get_social_service),
) -> FollowResponse:
	return await service.unfollow(auth_user, user_id)

"""Profiles and follow edges."""

from __future__ import annotations

import logging
from typing import List, Optional

from inkwell.domain.errors import NotFound, ValidationFailed
from inkwell.infra.auth import AuthenticatedUser

from .models import UserProfile
from .repo import SocialRepository, social_repository
from .schemas import FollowResponse, ProfileResponse, ProfileUpdateRequest, UserSummary

logger = logging.getLogger(__name__)


class SocialService:
	def __init__(self, repository: Optional[SocialRepository] = None) -> None:
		self._repo = repository or social_repository()

	async def get_profile(self, username: str, viewer: Optional[AuthenticatedUser]) -> ProfileResponse:
		user = await self.require_user(username)
		stats = await self._repo.stats(user.id)
		is_following = None
		if viewer is not None:
			is_following = await self._repo.is_following(viewer.id, user.id)
		return ProfileResponse.build(user, stats, is_following=is_following)

	async def update_profile(self, auth_user: AuthenticatedUser, payload: ProfileUpdateRequest) -> ProfileResponse:
		user = await self._repo.update_profile(
			auth_user.id,
			display_name=payload.display_name,
			bio=payload.bio,
			theme_preference=payload.theme_preference,
		)
		if user is None:
			raise NotFound("user_not_found")
		stats = await self._repo.stats(user.id)
		return ProfileResponse.build(user, stats)

	async def follow(self, auth_user: AuthenticatedUser, target_id: int) -> FollowResponse:
		if auth_user.id == target_id:
			raise ValidationFailed("cannot_follow_self")
		if await self._repo.get_user(target_id) is None:
			raise NotFound("user_not_found")
		await self._repo.follow(auth_user.id, target_id)
		logger.info("user_followed", extra={"follower_id": auth_user.id, "following_id": target_id})
		return FollowResponse(user_id=target_id, following=True)

	async def unfollow(self, auth_user: AuthenticatedUser, target_id: int) -> FollowResponse:
		await self._repo.unfollow(auth_user.id, target_id)
		return FollowResponse(user_id=target_id, following=False)

	async def require_user(self, username: str) -> UserProfile:
		user = await self._repo.get_user_by_username(username)
		if user is None:
			raise NotFound("user_not_found")
		return user

	async def list_followers(self, username: str, *, page: int, limit: int) -> List[UserSummary]:
		user = await self.require_user(username)
		rows = await self._repo.list_followers(user.id, limit=limit, offset=(page - 1) * limit)
		return [UserSummary.from_model(row) for row in rows]

	async def list_following(self, username: str, *, page: int, limit: int) -> List[UserSummary]:
		user = await self.require_user(username)
		rows = await self._repo.list_following(user.id, limit=limit, offset=(page - 1) * limit)
		return [UserSummary.from_model(row) for row in rows]

	async def search_users(self, query: str, *, page: int, limit: int) -> List[UserSummary]:
		text = query.strip()
		if not text:
			return []
		rows = await self._repo.search_users(text, limit=limit, offset=(page - 1) * limit)
		return [UserSummary.from_model(row) for row in rows]

"""Pydantic schemas for profile and follow endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .models import ProfileStats, UserProfile


class UserSummary(BaseModel):
	id: int
	username: str
	display_name: Optional[str] = None
	profile_image: Optional[str] = None
	bio: Optional[str] = None

	@classmethod
	def from_model(cls, user: UserProfile) -> "UserSummary":
		return cls(
			id=user.id,
			username=user.username,
			display_name=user.display_name,
			profile_image=user.profile_image,
			bio=user.bio,
		)


class ProfileResponse(UserSummary):
	theme_preference: str = "light"
	created_at: Optional[datetime] = None
	followers_count: int = 0
	following_count: int = 0
	posts_count: int = 0
	is_following: Optional[bool] = None

	@classmethod
	def build(
		cls,
		user: UserProfile,
		stats: ProfileStats,
		*,
		is_following: Optional[bool] = None,
	) -> "ProfileResponse":
		return cls(
			id=user.id,
			username=user.username,
			display_name=user.display_name,
			profile_image=user.profile_image,
			bio=user.bio,
			theme_preference=user.theme_preference,
			created_at=user.created_at,
			followers_count=stats.followers_count,
			following_count=stats.following_count,
			posts_count=stats.posts_count,
			is_following=is_following,
		)


class ProfileUpdateRequest(BaseModel):
	display_name: Optional[str] = Field(default=None, max_length=255)
	bio: Optional[str] = Field(default=None, max_length=2000)
	theme_preference: Optional[Literal["light", "dark"]] = None


class FollowResponse(BaseModel):
	user_id: int
	following: bool

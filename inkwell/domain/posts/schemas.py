"""Pydantic schemas for the posts endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import CommentRecord, PostRecord, TagCount


class AuthorSummary(BaseModel):
	username: Optional[str] = None
	display_name: Optional[str] = None
	profile_image: Optional[str] = None


class PostResponse(BaseModel):
	id: int
	user_id: int
	title: str
	content: str
	tags: List[str] = Field(default_factory=list)
	is_published: bool = True
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	author: AuthorSummary
	likes_count: int = 0
	comments_count: int = 0
	is_liked: bool = False
	score: Optional[float] = None

	@classmethod
	def from_record(cls, post: PostRecord) -> "PostResponse":
		return cls(
			id=post.id,
			user_id=post.user_id,
			title=post.title,
			content=post.content,
			tags=list(post.tags),
			is_published=post.is_published,
			created_at=post.created_at,
			updated_at=post.updated_at,
			author=AuthorSummary(
				username=post.username,
				display_name=post.display_name,
				profile_image=post.profile_image,
			),
			likes_count=post.likes_count,
			comments_count=post.comments_count,
			is_liked=post.is_liked,
			score=post.score,
		)


class PostCreateRequest(BaseModel):
	title: str = Field(..., max_length=255)
	content: str
	tags: List[str] = Field(default_factory=list)
	is_published: bool = True


class PostUpdateRequest(BaseModel):
	title: Optional[str] = Field(default=None, max_length=255)
	content: Optional[str] = None
	tags: Optional[List[str]] = None
	is_published: Optional[bool] = None


class LikeResponse(BaseModel):
	post_id: int
	liked: bool
	likes_count: int


class CommentCreateRequest(BaseModel):
	content: str = Field(..., max_length=5000)


class CommentResponse(BaseModel):
	id: int
	post_id: int
	user_id: int
	content: str
	created_at: Optional[datetime] = None
	author: AuthorSummary

	@classmethod
	def from_record(cls, comment: CommentRecord) -> "CommentResponse":
		return cls(
			id=comment.id,
			post_id=comment.post_id,
			user_id=comment.user_id,
			content=comment.content,
			created_at=comment.created_at,
			author=AuthorSummary(
				username=comment.username,
				display_name=comment.display_name,
				profile_image=comment.profile_image,
			),
		)


class TagCountResponse(BaseModel):
	tag: str
	count: int

	@classmethod
	def from_model(cls, item: TagCount) -> "TagCountResponse":
		return cls(tag=item.tag, count=item.count)

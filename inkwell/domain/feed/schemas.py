"""Response schema for assembled feed pages."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from inkwell.domain.posts.schemas import PostResponse


class FeedResponse(BaseModel):
	session_id: str
	page: int
	posts: List[PostResponse] = Field(default_factory=list)
	has_more: bool = False

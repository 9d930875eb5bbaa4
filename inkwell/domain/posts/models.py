"""Domain models for posts, comments and tags."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
	"""Strip tags, drop blanks and repeats; order carries no meaning but is kept stable."""
	seen: set[str] = set()
	result: List[str] = []
	for raw in tags or ():
		tag = str(raw).strip()
		if not tag or tag in seen:
			continue
		seen.add(tag)
		result.append(tag)
	return result


@dataclass(slots=True)
class PostRecord:
	"""A post joined with its author's public fields and read-time annotations."""

	id: int
	user_id: int
	title: str
	content: str
	tags: List[str] = field(default_factory=list)
	is_published: bool = True
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	username: Optional[str] = None
	display_name: Optional[str] = None
	profile_image: Optional[str] = None
	likes_count: int = 0
	comments_count: int = 0
	is_liked: bool = False
	score: Optional[float] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "PostRecord":
		score = row.get("score")
		return cls(
			id=int(row["id"]),
			user_id=int(row["user_id"]),
			title=row["title"],
			content=row["content"],
			tags=list(row.get("tags") or []),
			is_published=bool(row.get("is_published", True)),
			created_at=row.get("created_at"),
			updated_at=row.get("updated_at"),
			username=row.get("username"),
			display_name=row.get("display_name"),
			profile_image=row.get("profile_image"),
			likes_count=int(row.get("likes_count") or 0),
			comments_count=int(row.get("comments_count") or 0),
			is_liked=bool(row.get("is_liked") or False),
			score=float(score) if score is not None else None,
		)

	def visible_to(self, viewer_id: Optional[int]) -> bool:
		return self.is_published or (viewer_id is not None and viewer_id == self.user_id)


@dataclass(slots=True)
class CommentRecord:
	id: int
	post_id: int
	user_id: int
	content: str
	created_at: Optional[datetime] = None
	username: Optional[str] = None
	display_name: Optional[str] = None
	profile_image: Optional[str] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "CommentRecord":
		return cls(
			id=int(row["id"]),
			post_id=int(row["post_id"]),
			user_id=int(row["user_id"]),
			content=row["content"],
			created_at=row.get("created_at"),
			username=row.get("username"),
			display_name=row.get("display_name"),
			profile_image=row.get("profile_image"),
		)


@dataclass(slots=True)
class TagCount:
	tag: str
	count: int

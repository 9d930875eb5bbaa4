"""Post storage: Postgres queries plus the in-memory twin used by tests."""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from inkwell.domain.errors import UpstreamUnavailable
from inkwell.domain.search import ranking
from inkwell.domain.search.query import INTENT_FIELDS, PostSearchQuery, SearchCriteria, SearchIntent
from inkwell.infra.memory import MemoryStore, get_store
from inkwell.infra.postgres import Gateway
from inkwell.settings import settings

from .models import CommentRecord, PostRecord, TagCount

# $1 is always the viewer id; it drives the is_liked annotation.
_ANNOTATED_SELECT = """
	SELECT p.id, p.user_id, p.title, p.content, p.tags, p.is_published, p.created_at, p.updated_at,
		u.username, u.display_name, u.profile_image,
		(SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id) AS likes_count,
		(SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id) AS comments_count,
		EXISTS(SELECT 1 FROM likes l WHERE l.post_id = p.id AND l.user_id = $1) AS is_liked
	FROM posts p
	JOIN users u ON u.id = p.user_id
"""


class PostRepository(Protocol):
	async def create_post(
		self, user_id: int, *, title: str, content: str, tags: List[str], is_published: bool
	) -> PostRecord: ...

	async def get_post(self, post_id: int, viewer_id: Optional[int]) -> Optional[PostRecord]: ...

	async def update_post(
		self,
		post_id: int,
		*,
		title: Optional[str],
		content: Optional[str],
		tags: Optional[List[str]],
		is_published: Optional[bool],
	) -> None: ...

	async def delete_post(self, post_id: int) -> None: ...

	async def like(self, post_id: int, user_id: int) -> None: ...

	async def unlike(self, post_id: int, user_id: int) -> None: ...

	async def list_comments(self, post_id: int, *, limit: int, offset: int) -> List[CommentRecord]: ...

	async def add_comment(self, post_id: int, user_id: int, content: str) -> CommentRecord: ...

	async def popular_tags(self, limit: int) -> List[TagCount]: ...

	async def list_own(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]: ...

	async def list_following(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]: ...

	async def list_global(self, viewer_id: Optional[int], *, limit: int, offset: int) -> List[PostRecord]: ...

	async def list_by_author(
		self, author_id: int, viewer_id: Optional[int], *, limit: int, offset: int
	) -> List[PostRecord]: ...

	async def list_drafts(self, user_id: int, *, limit: int, offset: int) -> List[PostRecord]: ...

	async def search(self, criteria: SearchCriteria, viewer_id: Optional[int]) -> List[PostRecord]: ...


class PostgresPostRepository:
	def __init__(self, gateway: Optional[Gateway] = None) -> None:
		self._db = gateway or Gateway()

	async def _annotated(self, where: str, viewer_id: Optional[int], *args) -> List[PostRecord]:
		rows = await self._db.fetch(f"{_ANNOTATED_SELECT} WHERE {where}", viewer_id, *args)
		return [PostRecord.from_record(row) for row in rows]

	async def create_post(
		self, user_id: int, *, title: str, content: str, tags: List[str], is_published: bool
	) -> PostRecord:
		post_id = await self._db.fetchval(
			"""
			INSERT INTO posts (user_id, title, content, tags, is_published)
			VALUES ($1, $2, $3, $4, $5)
			RETURNING id
			""",
			user_id,
			title,
			content,
			tags,
			is_published,
		)
		post = await self.get_post(int(post_id), user_id)
		if post is None:
			raise UpstreamUnavailable("post_unavailable")
		return post

	async def get_post(self, post_id: int, viewer_id: Optional[int]) -> Optional[PostRecord]:
		rows = await self._annotated("p.id = $2", viewer_id, post_id)
		return rows[0] if rows else None

	async def update_post(
		self,
		post_id: int,
		*,
		title: Optional[str],
		content: Optional[str],
		tags: Optional[List[str]],
		is_published: Optional[bool],
	) -> None:
		await self._db.execute(
			"""
			UPDATE posts
			SET title = COALESCE($1, title),
				content = COALESCE($2, content),
				tags = COALESCE($3, tags),
				is_published = COALESCE($4, is_published),
				updated_at = CURRENT_TIMESTAMP
			WHERE id = $5
			""",
			title,
			content,
			tags,
			is_published,
			post_id,
		)

	async def delete_post(self, post_id: int) -> None:
		await self._db.execute("DELETE FROM posts WHERE id = $1", post_id)

	async def like(self, post_id: int, user_id: int) -> None:
		await self._db.execute(
			"INSERT INTO likes (post_id, user_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
			post_id,
			user_id,
		)

	async def unlike(self, post_id: int, user_id: int) -> None:
		await self._db.execute("DELETE FROM likes WHERE post_id = $1 AND user_id = $2", post_id, user_id)

	async def list_comments(self, post_id: int, *, limit: int, offset: int) -> List[CommentRecord]:
		rows = await self._db.fetch(
			"""
			SELECT c.id, c.post_id, c.user_id, c.content, c.created_at,
				u.username, u.display_name, u.profile_image
			FROM comments c
			JOIN users u ON u.id = c.user_id
			WHERE c.post_id = $1
			ORDER BY c.created_at ASC, c.id ASC
			LIMIT $2 OFFSET $3
			""",
			post_id,
			limit,
			offset,
		)
		return [CommentRecord.from_record(row) for row in rows]

	async def add_comment(self, post_id: int, user_id: int, content: str) -> CommentRecord:
		row = await self._db.fetchrow(
			"""
			WITH inserted AS (
				INSERT INTO comments (post_id, user_id, content)
				VALUES ($1, $2, $3)
				RETURNING id, post_id, user_id, content, created_at
			)
			SELECT i.*, u.username, u.display_name, u.profile_image
			FROM inserted i
			JOIN users u ON u.id = i.user_id
			""",
			post_id,
			user_id,
			content,
		)
		return CommentRecord.from_record(row)

	async def popular_tags(self, limit: int) -> List[TagCount]:
		rows = await self._db.fetch(
			"""
			SELECT tag, COUNT(*) AS count
			FROM posts, unnest(tags) AS tag
			WHERE is_published = true
			GROUP BY tag
			ORDER BY count DESC, tag ASC
			LIMIT $1
			""",
			limit,
		)
		return [TagCount(tag=row["tag"], count=int(row["count"])) for row in rows]

	async def list_own(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		return await self._annotated(
			"p.user_id = $1 AND p.is_published = true ORDER BY p.created_at DESC LIMIT $2 OFFSET $3",
			viewer_id,
			limit,
			offset,
		)

	async def list_following(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		return await self._annotated(
			"""
			p.is_published = true
				AND p.user_id IN (SELECT following_id FROM followers WHERE follower_id = $1)
			ORDER BY p.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			viewer_id,
			limit,
			offset,
		)

	async def list_global(self, viewer_id: Optional[int], *, limit: int, offset: int) -> List[PostRecord]:
		sql, params = PostSearchQuery(viewer_id).paginate(limit=limit, offset=offset).build()
		rows = await self._db.fetch(sql, *params)
		return [PostRecord.from_record(row) for row in rows]

	async def list_by_author(
		self, author_id: int, viewer_id: Optional[int], *, limit: int, offset: int
	) -> List[PostRecord]:
		return await self._annotated(
			"p.user_id = $2 AND p.is_published = true ORDER BY p.created_at DESC LIMIT $3 OFFSET $4",
			viewer_id,
			author_id,
			limit,
			offset,
		)

	async def list_drafts(self, user_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		return await self._annotated(
			"p.user_id = $1 AND p.is_published = false ORDER BY p.updated_at DESC LIMIT $2 OFFSET $3",
			user_id,
			limit,
			offset,
		)

	async def search(self, criteria: SearchCriteria, viewer_id: Optional[int]) -> List[PostRecord]:
		sql, params = PostSearchQuery.from_criteria(criteria, viewer_id).build()
		rows = await self._db.fetch(sql, *params)
		return [PostRecord.from_record(row) for row in rows]


class MemoryPostRepository:
	def __init__(self, store: Optional[MemoryStore] = None) -> None:
		self._store = store or get_store()

	def _annotate(self, row: dict, viewer_id: Optional[int]) -> PostRecord:
		post_id = row["id"]
		record = dict(row)
		record.update(self._store.public_profile(row["user_id"]))
		record["likes_count"] = sum(1 for pid, _ in self._store.likes if pid == post_id)
		record["comments_count"] = sum(1 for c in self._store.comments.values() if c["post_id"] == post_id)
		record["is_liked"] = viewer_id is not None and (post_id, viewer_id) in self._store.likes
		return PostRecord.from_record(record)

	def _newest(self, rows: Iterable[dict], viewer_id: Optional[int], limit: int, offset: int) -> List[PostRecord]:
		ordered = sorted(rows, key=lambda row: (row["created_at"], row["id"]), reverse=True)
		return [self._annotate(row, viewer_id) for row in ordered[offset : offset + limit]]

	def _published(self) -> List[dict]:
		return [row for row in self._store.posts.values() if row["is_published"]]

	async def create_post(
		self, user_id: int, *, title: str, content: str, tags: List[str], is_published: bool
	) -> PostRecord:
		row = self._store.add_post(user_id, title, content, tags=tags, is_published=is_published)
		return self._annotate(row, user_id)

	async def get_post(self, post_id: int, viewer_id: Optional[int]) -> Optional[PostRecord]:
		row = self._store.posts.get(post_id)
		return self._annotate(row, viewer_id) if row else None

	async def update_post(
		self,
		post_id: int,
		*,
		title: Optional[str],
		content: Optional[str],
		tags: Optional[List[str]],
		is_published: Optional[bool],
	) -> None:
		row = self._store.posts.get(post_id)
		if row is None:
			return
		changes = {"title": title, "content": content, "tags": tags, "is_published": is_published}
		row.update({key: value for key, value in changes.items() if value is not None})
		row["updated_at"] = self._store.now()

	async def delete_post(self, post_id: int) -> None:
		self._store.posts.pop(post_id, None)
		for key in [key for key in self._store.likes if key[0] == post_id]:
			del self._store.likes[key]
		for comment_id in [cid for cid, c in self._store.comments.items() if c["post_id"] == post_id]:
			del self._store.comments[comment_id]

	async def like(self, post_id: int, user_id: int) -> None:
		self._store.add_like(post_id, user_id)

	async def unlike(self, post_id: int, user_id: int) -> None:
		self._store.likes.pop((post_id, user_id), None)

	async def list_comments(self, post_id: int, *, limit: int, offset: int) -> List[CommentRecord]:
		rows = sorted(
			(c for c in self._store.comments.values() if c["post_id"] == post_id),
			key=lambda c: (c["created_at"], c["id"]),
		)
		return [self._comment(row) for row in rows[offset : offset + limit]]

	def _comment(self, row: dict) -> CommentRecord:
		return CommentRecord.from_record({**row, **self._store.public_profile(row["user_id"])})

	async def add_comment(self, post_id: int, user_id: int, content: str) -> CommentRecord:
		return self._comment(self._store.add_comment(post_id, user_id, content))

	async def popular_tags(self, limit: int) -> List[TagCount]:
		counts: dict[str, int] = {}
		for row in self._published():
			for tag in row["tags"]:
				counts[tag] = counts.get(tag, 0) + 1
		ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
		return [TagCount(tag=tag, count=count) for tag, count in ordered[:limit]]

	async def list_own(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		rows = [row for row in self._published() if row["user_id"] == viewer_id]
		return self._newest(rows, viewer_id, limit, offset)

	async def list_following(self, viewer_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		followed = {following for follower, following in self._store.follows if follower == viewer_id}
		rows = [row for row in self._published() if row["user_id"] in followed]
		return self._newest(rows, viewer_id, limit, offset)

	async def list_global(self, viewer_id: Optional[int], *, limit: int, offset: int) -> List[PostRecord]:
		return self._newest(self._published(), viewer_id, limit, offset)

	async def list_by_author(
		self, author_id: int, viewer_id: Optional[int], *, limit: int, offset: int
	) -> List[PostRecord]:
		rows = [row for row in self._published() if row["user_id"] == author_id]
		return self._newest(rows, viewer_id, limit, offset)

	async def list_drafts(self, user_id: int, *, limit: int, offset: int) -> List[PostRecord]:
		rows = [row for row in self._store.posts.values() if row["user_id"] == user_id and not row["is_published"]]
		ordered = sorted(rows, key=lambda row: (row["updated_at"], row["id"]), reverse=True)
		return [self._annotate(row, user_id) for row in ordered[offset : offset + limit]]

	async def search(self, criteria: SearchCriteria, viewer_id: Optional[int]) -> List[PostRecord]:
		rows = self._published()
		if criteria.tag:
			rows = [row for row in rows if criteria.tag in row["tags"]]
		if criteria.intent is SearchIntent.NONE or not criteria.text:
			return self._newest(rows, viewer_id, criteria.limit, criteria.offset)
		fields = INTENT_FIELDS[criteria.intent]
		scored: List[PostRecord] = []
		for row in rows:
			post = self._annotate(row, viewer_id)
			value = ranking.score([(getattr(post, attr), weight) for _, attr, weight in fields], criteria.text)
			if value is None:
				continue
			post.score = value
			scored.append(post)
		scored.sort(key=lambda post: (post.score, post.created_at, post.id), reverse=True)
		return scored[criteria.offset : criteria.offset + criteria.limit]


def post_repository() -> PostRepository:
	if settings.uses_memory_store():
		return MemoryPostRepository()
	return PostgresPostRepository()

"""Storage for users and follow edges, Postgres-backed with an in-memory twin."""

from __future__ import annotations

from typing import List, Optional, Protocol

from inkwell.infra.memory import MemoryStore, get_store
from inkwell.infra.postgres import Gateway
from inkwell.settings import settings

from .models import ProfileStats, UserProfile

_USER_COLUMNS = "id, username, display_name, profile_image, bio, theme_preference, created_at"


class SocialRepository(Protocol):
	async def get_user(self, user_id: int) -> Optional[UserProfile]: ...

	async def get_user_by_username(self, username: str) -> Optional[UserProfile]: ...

	async def update_profile(
		self,
		user_id: int,
		*,
		display_name: Optional[str],
		bio: Optional[str],
		theme_preference: Optional[str],
	) -> Optional[UserProfile]: ...

	async def follow(self, follower_id: int, following_id: int) -> None: ...

	async def unfollow(self, follower_id: int, following_id: int) -> None: ...

	async def is_following(self, follower_id: int, following_id: int) -> bool: ...

	async def stats(self, user_id: int) -> ProfileStats: ...

	async def list_followers(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]: ...

	async def list_following(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]: ...

	async def search_users(self, query: str, *, limit: int, offset: int) -> List[UserProfile]: ...


def _like_pattern(text: str) -> str:
	escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"%{escaped}%"


class PostgresSocialRepository:
	def __init__(self, gateway: Optional[Gateway] = None) -> None:
		self._db = gateway or Gateway()

	async def get_user(self, user_id: int) -> Optional[UserProfile]:
		row = await self._db.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
		return UserProfile.from_record(row) if row else None

	async def get_user_by_username(self, username: str) -> Optional[UserProfile]:
		row = await self._db.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE username = $1", username)
		return UserProfile.from_record(row) if row else None

	async def update_profile(
		self,
		user_id: int,
		*,
		display_name: Optional[str],
		bio: Optional[str],
		theme_preference: Optional[str],
	) -> Optional[UserProfile]:
		row = await self._db.fetchrow(
			f"""
			UPDATE users
			SET display_name = COALESCE($1, display_name),
				bio = COALESCE($2, bio),
				theme_preference = COALESCE($3, theme_preference),
				updated_at = CURRENT_TIMESTAMP
			WHERE id = $4
			RETURNING {_USER_COLUMNS}
			""",
			display_name,
			bio,
			theme_preference,
			user_id,
		)
		return UserProfile.from_record(row) if row else None

	async def follow(self, follower_id: int, following_id: int) -> None:
		await self._db.execute(
			"INSERT INTO followers (follower_id, following_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
			follower_id,
			following_id,
		)

	async def unfollow(self, follower_id: int, following_id: int) -> None:
		await self._db.execute(
			"DELETE FROM followers WHERE follower_id = $1 AND following_id = $2",
			follower_id,
			following_id,
		)

	async def is_following(self, follower_id: int, following_id: int) -> bool:
		value = await self._db.fetchval(
			"SELECT EXISTS(SELECT 1 FROM followers WHERE follower_id = $1 AND following_id = $2)",
			follower_id,
			following_id,
		)
		return bool(value)

	async def stats(self, user_id: int) -> ProfileStats:
		row = await self._db.fetchrow(
			"""
			SELECT
				(SELECT COUNT(*) FROM followers WHERE following_id = $1) AS followers_count,
				(SELECT COUNT(*) FROM followers WHERE follower_id = $1) AS following_count,
				(SELECT COUNT(*) FROM posts WHERE user_id = $1 AND is_published = true) AS posts_count
			""",
			user_id,
		)
		return ProfileStats(
			followers_count=int(row["followers_count"]),
			following_count=int(row["following_count"]),
			posts_count=int(row["posts_count"]),
		)

	async def list_followers(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]:
		rows = await self._db.fetch(
			"""
			SELECT u.id, u.username, u.display_name, u.profile_image, u.bio, u.theme_preference, u.created_at
			FROM followers f
			JOIN users u ON f.follower_id = u.id
			WHERE f.following_id = $1
			ORDER BY f.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			user_id,
			limit,
			offset,
		)
		return [UserProfile.from_record(row) for row in rows]

	async def list_following(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]:
		rows = await self._db.fetch(
			"""
			SELECT u.id, u.username, u.display_name, u.profile_image, u.bio, u.theme_preference, u.created_at
			FROM followers f
			JOIN users u ON f.following_id = u.id
			WHERE f.follower_id = $1
			ORDER BY f.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			user_id,
			limit,
			offset,
		)
		return [UserProfile.from_record(row) for row in rows]

	async def search_users(self, query: str, *, limit: int, offset: int) -> List[UserProfile]:
		rows = await self._db.fetch(
			f"""
			SELECT {_USER_COLUMNS}
			FROM users
			WHERE username ILIKE $1 ESCAPE '\\' OR display_name ILIKE $1 ESCAPE '\\'
			ORDER BY display_name
			LIMIT $2 OFFSET $3
			""",
			_like_pattern(query),
			limit,
			offset,
		)
		return [UserProfile.from_record(row) for row in rows]


class MemorySocialRepository:
	def __init__(self, store: Optional[MemoryStore] = None) -> None:
		self._store = store or get_store()

	def _profile(self, user_id: int) -> Optional[UserProfile]:
		row = self._store.users.get(user_id)
		return UserProfile.from_record(row) if row else None

	async def get_user(self, user_id: int) -> Optional[UserProfile]:
		return self._profile(user_id)

	async def get_user_by_username(self, username: str) -> Optional[UserProfile]:
		for row in self._store.users.values():
			if row["username"] == username:
				return UserProfile.from_record(row)
		return None

	async def update_profile(
		self,
		user_id: int,
		*,
		display_name: Optional[str],
		bio: Optional[str],
		theme_preference: Optional[str],
	) -> Optional[UserProfile]:
		row = self._store.users.get(user_id)
		if row is None:
			return None
		if display_name is not None:
			row["display_name"] = display_name
		if bio is not None:
			row["bio"] = bio
		if theme_preference is not None:
			row["theme_preference"] = theme_preference
		row["updated_at"] = self._store.now()
		return UserProfile.from_record(row)

	async def follow(self, follower_id: int, following_id: int) -> None:
		self._store.add_follow(follower_id, following_id)

	async def unfollow(self, follower_id: int, following_id: int) -> None:
		self._store.follows.pop((follower_id, following_id), None)

	async def is_following(self, follower_id: int, following_id: int) -> bool:
		return (follower_id, following_id) in self._store.follows

	async def stats(self, user_id: int) -> ProfileStats:
		follows = self._store.follows
		return ProfileStats(
			followers_count=sum(1 for _, following in follows if following == user_id),
			following_count=sum(1 for follower, _ in follows if follower == user_id),
			posts_count=sum(
				1 for post in self._store.posts.values() if post["user_id"] == user_id and post["is_published"]
			),
		)

	def _edges(self, *, index: int, user_id: int) -> List[UserProfile]:
		edges = [(created, pair) for pair, created in self._store.follows.items() if pair[index] == user_id]
		edges.sort(key=lambda item: item[0], reverse=True)
		other = 1 - index
		profiles = [self._profile(pair[other]) for _, pair in edges]
		return [profile for profile in profiles if profile is not None]

	async def list_followers(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]:
		return self._edges(index=1, user_id=user_id)[offset : offset + limit]

	async def list_following(self, user_id: int, *, limit: int, offset: int) -> List[UserProfile]:
		return self._edges(index=0, user_id=user_id)[offset : offset + limit]

	async def search_users(self, query: str, *, limit: int, offset: int) -> List[UserProfile]:
		needle = query.lower()
		matches = [
			UserProfile.from_record(row)
			for row in self._store.users.values()
			if needle in row["username"].lower() or needle in (row.get("display_name") or "").lower()
		]
		matches.sort(key=lambda user: user.display_name or "")
		return matches[offset : offset + limit]


def social_repository() -> SocialRepository:
	if settings.uses_memory_store():
		return MemorySocialRepository()
	return PostgresSocialRepository()

"""Process-local table set used when no Postgres pool is configured.

Rows are plain dicts keyed like the SQL columns so the same `from_record`
constructors work for both storage backends. Every mutation is synchronous and
runs on the event loop thread, so no update interleaves with another.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional


class MemoryStore:
	def __init__(self) -> None:
		self.users: dict[int, dict] = {}
		self.posts: dict[int, dict] = {}
		self.comments: dict[int, dict] = {}
		self.chats: dict[int, dict] = {}
		self.messages: dict[int, dict] = {}
		# (follower_id, following_id) -> created_at
		self.follows: dict[tuple[int, int], datetime] = {}
		# (post_id, user_id) -> created_at
		self.likes: dict[tuple[int, int], datetime] = {}
		self._sequences: dict[str, int] = {}
		self._last_ts: Optional[datetime] = None

	def next_id(self, table: str) -> int:
		value = self._sequences.get(table, 0) + 1
		self._sequences[table] = value
		return value

	def now(self) -> datetime:
		"""Return a strictly increasing timestamp so recency ordering is stable."""
		current = datetime.now(timezone.utc)
		if self._last_ts is not None and current <= self._last_ts:
			current = self._last_ts + timedelta(microseconds=1)
		self._last_ts = current
		return current

	# Seeding helpers, used by tests and local fixtures.

	def add_user(
		self,
		username: str,
		*,
		display_name: Optional[str] = None,
		email: Optional[str] = None,
		profile_image: Optional[str] = None,
		bio: Optional[str] = None,
		theme_preference: str = "light",
	) -> dict:
		user_id = self.next_id("users")
		created = self.now()
		row = {
			"id": user_id,
			"email": email or f"{username}@example.com",
			"username": username,
			"display_name": display_name if display_name is not None else username,
			"profile_image": profile_image,
			"bio": bio,
			"theme_preference": theme_preference,
			"created_at": created,
			"updated_at": created,
		}
		self.users[user_id] = row
		return row

	def add_post(
		self,
		user_id: int,
		title: str,
		content: str = "",
		*,
		tags: Iterable[str] = (),
		is_published: bool = True,
		created_at: Optional[datetime] = None,
	) -> dict:
		post_id = self.next_id("posts")
		created = created_at or self.now()
		row = {
			"id": post_id,
			"user_id": user_id,
			"title": title,
			"content": content,
			"tags": list(tags),
			"is_published": is_published,
			"created_at": created,
			"updated_at": created,
		}
		self.posts[post_id] = row
		return row

	def add_follow(self, follower_id: int, following_id: int) -> None:
		self.follows.setdefault((follower_id, following_id), self.now())

	def add_like(self, post_id: int, user_id: int) -> None:
		self.likes.setdefault((post_id, user_id), self.now())

	def add_comment(self, post_id: int, user_id: int, content: str) -> dict:
		comment_id = self.next_id("comments")
		created = self.now()
		row = {
			"id": comment_id,
			"post_id": post_id,
			"user_id": user_id,
			"content": content,
			"created_at": created,
			"updated_at": created,
		}
		self.comments[comment_id] = row
		return row

	def add_chat(self, user_a: int, user_b: int) -> dict:
		low, high = sorted((user_a, user_b))
		chat_id = self.next_id("chats")
		row = {"id": chat_id, "user1_id": low, "user2_id": high, "created_at": self.now()}
		self.chats[chat_id] = row
		return row

	def add_message(self, chat_id: int, sender_id: int, content: str, *, is_read: bool = False) -> dict:
		message_id = self.next_id("messages")
		row = {
			"id": message_id,
			"chat_id": chat_id,
			"sender_id": sender_id,
			"content": content,
			"is_read": is_read,
			"created_at": self.now(),
		}
		self.messages[message_id] = row
		return row

	def public_profile(self, user_id: int) -> dict:
		user = self.users.get(user_id) or {}
		return {
			"username": user.get("username"),
			"display_name": user.get("display_name"),
			"profile_image": user.get("profile_image"),
		}


_STORE = MemoryStore()


def get_store() -> MemoryStore:
	return _STORE


def reset_store() -> MemoryStore:
	global _STORE
	_STORE = MemoryStore()
	return _STORE

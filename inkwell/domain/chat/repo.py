"""Chat persistence, Postgres-backed with an in-memory twin."""

from __future__ import annotations

from typing import List, Optional, Protocol

from inkwell.infra.memory import MemoryStore, get_store
from inkwell.infra.postgres import Gateway, affected_rows
from inkwell.settings import settings

from .models import ChatRecord, ChatUser, ConversationRecord, MessageRecord, normalize_pair


class ChatRepository(Protocol):
	async def get_user(self, user_id: int) -> Optional[ChatUser]: ...

	async def get_chat(self, chat_id: int) -> Optional[ChatRecord]: ...

	async def get_or_create_chat(self, user_one: int, user_two: int) -> ChatRecord: ...

	async def create_message(self, chat_id: int, sender_id: int, content: str) -> MessageRecord: ...

	async def mark_read(self, chat_id: int, reader_id: int) -> int: ...

	async def list_messages(self, chat_id: int, *, limit: int, offset: int) -> List[MessageRecord]: ...

	async def list_conversations(self, user_id: int) -> List[ConversationRecord]: ...

	async def unread_count(self, user_id: int) -> int: ...


class PostgresChatRepository:
	def __init__(self, gateway: Optional[Gateway] = None) -> None:
		self._db = gateway or Gateway()

	async def get_user(self, user_id: int) -> Optional[ChatUser]:
		row = await self._db.fetchrow(
			"SELECT id, username, display_name, profile_image FROM users WHERE id = $1",
			user_id,
		)
		return ChatUser.from_record(row) if row else None

	async def get_chat(self, chat_id: int) -> Optional[ChatRecord]:
		row = await self._db.fetchrow("SELECT id, user1_id, user2_id, created_at FROM chats WHERE id = $1", chat_id)
		return ChatRecord.from_record(row) if row else None

	async def get_or_create_chat(self, user_one: int, user_two: int) -> ChatRecord:
		low, high = normalize_pair(user_one, user_two)
		# Two concurrent callers may both miss the select; the unique pair plus
		# DO NOTHING keeps one row and the fallback select returns it.
		row = await self._db.fetchrow(
			"""
			INSERT INTO chats (user1_id, user2_id)
			VALUES ($1, $2)
			ON CONFLICT (user1_id, user2_id) DO NOTHING
			RETURNING id, user1_id, user2_id, created_at
			""",
			low,
			high,
		)
		if row is None:
			row = await self._db.fetchrow(
				"SELECT id, user1_id, user2_id, created_at FROM chats WHERE user1_id = $1 AND user2_id = $2",
				low,
				high,
			)
		return ChatRecord.from_record(row)

	async def create_message(self, chat_id: int, sender_id: int, content: str) -> MessageRecord:
		row = await self._db.fetchrow(
			"""
			INSERT INTO messages (chat_id, sender_id, content)
			VALUES ($1, $2, $3)
			RETURNING id, chat_id, sender_id, content, is_read, created_at
			""",
			chat_id,
			sender_id,
			content,
		)
		return MessageRecord.from_record(row)

	async def mark_read(self, chat_id: int, reader_id: int) -> int:
		status = await self._db.execute(
			"UPDATE messages SET is_read = true WHERE chat_id = $1 AND sender_id != $2 AND is_read = false",
			chat_id,
			reader_id,
		)
		return affected_rows(status)

	async def list_messages(self, chat_id: int, *, limit: int, offset: int) -> List[MessageRecord]:
		rows = await self._db.fetch(
			"""
			SELECT m.id, m.chat_id, m.sender_id, m.content, m.is_read, m.created_at,
				u.username, u.display_name, u.profile_image
			FROM messages m
			JOIN users u ON u.id = m.sender_id
			WHERE m.chat_id = $1
			ORDER BY m.created_at DESC, m.id DESC
			LIMIT $2 OFFSET $3
			""",
			chat_id,
			limit,
			offset,
		)
		return [MessageRecord.from_record(row) for row in reversed(rows)]

	async def list_conversations(self, user_id: int) -> List[ConversationRecord]:
		rows = await self._db.fetch(
			"""
			SELECT c.id AS chat_id, c.created_at,
				u.id AS other_id, u.username, u.display_name, u.profile_image,
				last.content AS last_message,
				last.created_at AS last_message_time,
				(SELECT COUNT(*) FROM messages m
					WHERE m.chat_id = c.id AND m.sender_id != $1 AND m.is_read = false) AS unread_count
			FROM chats c
			JOIN users u ON u.id = CASE WHEN c.user1_id = $1 THEN c.user2_id ELSE c.user1_id END
			LEFT JOIN LATERAL (
				SELECT content, created_at FROM messages
				WHERE chat_id = c.id
				ORDER BY created_at DESC, id DESC
				LIMIT 1
			) last ON true
			WHERE c.user1_id = $1 OR c.user2_id = $1
			ORDER BY last_message_time DESC NULLS LAST, c.id DESC
			""",
			user_id,
		)
		return [
			ConversationRecord(
				chat_id=int(row["chat_id"]),
				other_user=ChatUser(
					id=int(row["other_id"]),
					username=row["username"],
					display_name=row["display_name"],
					profile_image=row["profile_image"],
				),
				last_message=row["last_message"],
				last_message_time=row["last_message_time"],
				unread_count=int(row["unread_count"]),
				created_at=row["created_at"],
			)
			for row in rows
		]

	async def unread_count(self, user_id: int) -> int:
		value = await self._db.fetchval(
			"""
			SELECT COUNT(*)
			FROM messages m
			JOIN chats c ON c.id = m.chat_id
			WHERE (c.user1_id = $1 OR c.user2_id = $1)
				AND m.sender_id != $1
				AND m.is_read = false
			""",
			user_id,
		)
		return int(value or 0)


class MemoryChatRepository:
	def __init__(self, store: Optional[MemoryStore] = None) -> None:
		self._store = store or get_store()

	async def get_user(self, user_id: int) -> Optional[ChatUser]:
		row = self._store.users.get(user_id)
		return ChatUser.from_record(row) if row else None

	async def get_chat(self, chat_id: int) -> Optional[ChatRecord]:
		row = self._store.chats.get(chat_id)
		return ChatRecord.from_record(row) if row else None

	async def get_or_create_chat(self, user_one: int, user_two: int) -> ChatRecord:
		pair = normalize_pair(user_one, user_two)
		for row in self._store.chats.values():
			if (row["user1_id"], row["user2_id"]) == pair:
				return ChatRecord.from_record(row)
		return ChatRecord.from_record(self._store.add_chat(*pair))

	async def create_message(self, chat_id: int, sender_id: int, content: str) -> MessageRecord:
		return MessageRecord.from_record(self._store.add_message(chat_id, sender_id, content))

	async def mark_read(self, chat_id: int, reader_id: int) -> int:
		updated = 0
		for row in self._store.messages.values():
			if row["chat_id"] == chat_id and row["sender_id"] != reader_id and not row["is_read"]:
				row["is_read"] = True
				updated += 1
		return updated

	def _chat_messages(self, chat_id: int) -> List[dict]:
		rows = [row for row in self._store.messages.values() if row["chat_id"] == chat_id]
		rows.sort(key=lambda row: (row["created_at"], row["id"]))
		return rows

	async def list_messages(self, chat_id: int, *, limit: int, offset: int) -> List[MessageRecord]:
		newest_first = list(reversed(self._chat_messages(chat_id)))[offset : offset + limit]
		return [
			MessageRecord.from_record({**row, **self._store.public_profile(row["sender_id"])})
			for row in reversed(newest_first)
		]

	async def list_conversations(self, user_id: int) -> List[ConversationRecord]:
		result: List[ConversationRecord] = []
		for chat in self._store.chats.values():
			record = ChatRecord.from_record(chat)
			if not record.has_participant(user_id):
				continue
			other = self._store.users.get(record.other_participant(user_id))
			if other is None:
				continue
			messages = self._chat_messages(record.id)
			last = messages[-1] if messages else None
			result.append(
				ConversationRecord(
					chat_id=record.id,
					other_user=ChatUser.from_record(other),
					last_message=last["content"] if last else None,
					last_message_time=last["created_at"] if last else None,
					unread_count=sum(1 for m in messages if m["sender_id"] != user_id and not m["is_read"]),
					created_at=record.created_at,
				)
			)
		with_time = [item for item in result if item.last_message_time is not None]
		without_time = [item for item in result if item.last_message_time is None]
		with_time.sort(key=lambda item: item.last_message_time, reverse=True)
		without_time.sort(key=lambda item: item.chat_id, reverse=True)
		return with_time + without_time

	async def unread_count(self, user_id: int) -> int:
		chat_ids = {
			chat_id
			for chat_id, row in self._store.chats.items()
			if user_id in (row["user1_id"], row["user2_id"])
		}
		return sum(
			1
			for row in self._store.messages.values()
			if row["chat_id"] in chat_ids and row["sender_id"] != user_id and not row["is_read"]
		)


def chat_repository() -> ChatRepository:
	if settings.uses_memory_store():
		return MemoryChatRepository()
	return PostgresChatRepository()

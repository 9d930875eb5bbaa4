"""Domain models for direct chats."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple


def normalize_pair(user_one: int, user_two: int) -> Tuple[int, int]:
	"""Chats are stored with the smaller user id first."""
	low, high = sorted((int(user_one), int(user_two)))
	return low, high


@dataclass(frozen=True, slots=True)
class ChatUser:
	"""Public identity fields carried on real-time events."""

	id: int
	username: str
	display_name: Optional[str] = None
	profile_image: Optional[str] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "ChatUser":
		return cls(
			id=int(row["id"]),
			username=str(row["username"]),
			display_name=row.get("display_name"),
			profile_image=row.get("profile_image"),
		)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"username": self.username,
			"display_name": self.display_name,
			"profile_image": self.profile_image,
		}


@dataclass(slots=True)
class ChatRecord:
	id: int
	user1_id: int
	user2_id: int
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "ChatRecord":
		return cls(
			id=int(row["id"]),
			user1_id=int(row["user1_id"]),
			user2_id=int(row["user2_id"]),
			created_at=row.get("created_at"),
		)

	def participants(self) -> Tuple[int, int]:
		return (self.user1_id, self.user2_id)

	def has_participant(self, user_id: int) -> bool:
		return user_id in (self.user1_id, self.user2_id)

	def other_participant(self, user_id: int) -> int:
		return self.user2_id if self.user1_id == user_id else self.user1_id


@dataclass(slots=True)
class MessageRecord:
	id: int
	chat_id: int
	sender_id: int
	content: str
	is_read: bool = False
	created_at: Optional[datetime] = None
	username: Optional[str] = None
	display_name: Optional[str] = None
	profile_image: Optional[str] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "MessageRecord":
		return cls(
			id=int(row["id"]),
			chat_id=int(row["chat_id"]),
			sender_id=int(row["sender_id"]),
			content=row["content"],
			is_read=bool(row.get("is_read") or False),
			created_at=row.get("created_at"),
			username=row.get("username"),
			display_name=row.get("display_name"),
			profile_image=row.get("profile_image"),
		)

	def with_sender(self, sender: ChatUser) -> "MessageRecord":
		return MessageRecord(
			id=self.id,
			chat_id=self.chat_id,
			sender_id=self.sender_id,
			content=self.content,
			is_read=self.is_read,
			created_at=self.created_at,
			username=sender.username,
			display_name=sender.display_name,
			profile_image=sender.profile_image,
		)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"chat_id": self.chat_id,
			"sender_id": self.sender_id,
			"content": self.content,
			"is_read": self.is_read,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"username": self.username,
			"display_name": self.display_name,
			"profile_image": self.profile_image,
		}


@dataclass(slots=True)
class ConversationRecord:
	chat_id: int
	other_user: ChatUser
	last_message: Optional[str] = None
	last_message_time: Optional[datetime] = None
	unread_count: int = 0
	created_at: Optional[datetime] = None

"""Pydantic schemas for the chat HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import ConversationRecord, MessageRecord


class ChatHandle(BaseModel):
	chat_id: int


class ParticipantSummary(BaseModel):
	id: int
	username: str
	display_name: Optional[str] = None
	profile_image: Optional[str] = None


class ConversationResponse(BaseModel):
	chat_id: int
	other_user: ParticipantSummary
	last_message: Optional[str] = None
	last_message_time: Optional[datetime] = None
	unread_count: int = 0

	@classmethod
	def from_record(cls, record: ConversationRecord) -> "ConversationResponse":
		other = record.other_user
		return cls(
			chat_id=record.chat_id,
			other_user=ParticipantSummary(
				id=other.id,
				username=other.username,
				display_name=other.display_name,
				profile_image=other.profile_image,
			),
			last_message=record.last_message,
			last_message_time=record.last_message_time,
			unread_count=record.unread_count,
		)


class MessageResponse(BaseModel):
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
	def from_record(cls, message: MessageRecord) -> "MessageResponse":
		return cls(
			id=message.id,
			chat_id=message.chat_id,
			sender_id=message.sender_id,
			content=message.content,
			is_read=message.is_read,
			created_at=message.created_at,
			username=message.username,
			display_name=message.display_name,
			profile_image=message.profile_image,
		)


class SendMessageRequest(BaseModel):
	content: str = Field(..., max_length=4000)


class MarkReadResponse(BaseModel):
	chat_id: int
	updated: int


class UnreadCountResponse(BaseModel):
	unread_count: int

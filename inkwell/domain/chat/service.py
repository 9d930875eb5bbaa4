"""Chat operations behind the HTTP surface."""

from __future__ import annotations

import logging
from typing import List, Optional

from inkwell.domain.errors import NotAuthorized, NotFound, RateLimited, ValidationFailed
from inkwell.infra.auth import AuthenticatedUser
from inkwell.obs import metrics as obs_metrics

from . import sockets
from .handler import MessagingSessionHandler
from .models import ChatRecord
from .repo import ChatRepository, chat_repository
from .schemas import (
	ChatHandle,
	ConversationResponse,
	MarkReadResponse,
	MessageResponse,
	SendMessageRequest,
	UnreadCountResponse,
)

logger = logging.getLogger(__name__)

MESSAGES_PAGE_SIZE = 50


class ChatService:
	def __init__(
		self,
		repository: Optional[ChatRepository] = None,
		handler: Optional[MessagingSessionHandler] = None,
	) -> None:
		self._repo = repository or chat_repository()
		self._handler = handler

	def _realtime(self) -> Optional[MessagingSessionHandler]:
		return self._handler or sockets.get_handler()

	async def _participant_chat(self, auth_user: AuthenticatedUser, chat_id: int) -> ChatRecord:
		chat = await self._repo.get_chat(chat_id)
		if chat is None or not chat.has_participant(auth_user.id):
			raise NotAuthorized("not_authorized")
		return chat

	async def get_or_create_chat(self, auth_user: AuthenticatedUser, other_user_id: int) -> ChatHandle:
		if auth_user.id == other_user_id:
			raise ValidationFailed("cannot_chat_with_self")
		if await self._repo.get_user(other_user_id) is None:
			raise NotFound("user_not_found")
		chat = await self._repo.get_or_create_chat(auth_user.id, other_user_id)
		return ChatHandle(chat_id=chat.id)

	async def list_conversations(self, auth_user: AuthenticatedUser) -> List[ConversationResponse]:
		rows = await self._repo.list_conversations(auth_user.id)
		return [ConversationResponse.from_record(row) for row in rows]

	async def list_messages(
		self,
		auth_user: AuthenticatedUser,
		chat_id: int,
		*,
		page: int = 1,
		limit: int = MESSAGES_PAGE_SIZE,
	) -> List[MessageResponse]:
		chat = await self._participant_chat(auth_user, chat_id)
		rows = await self._repo.list_messages(chat.id, limit=limit, offset=(page - 1) * limit)
		obs_metrics.inc_chat_read(await self._repo.mark_read(chat.id, auth_user.id))
		return [MessageResponse.from_record(row) for row in rows]

	async def send_message(
		self, auth_user: AuthenticatedUser, chat_id: int, payload: SendMessageRequest
	) -> MessageResponse:
		content = payload.content.strip()
		if not content:
			raise ValidationFailed("content_required")
		chat = await self._participant_chat(auth_user, chat_id)
		sender = await self._repo.get_user(auth_user.id)
		if sender is None:
			raise NotFound("user_not_found")
		handler = self._realtime()
		if handler is not None and not await handler.allow_send(sender.id):
			obs_metrics.inc_chat_send_reject("rate_limited")
			raise RateLimited("rate_limited")
		message = (await self._repo.create_message(chat.id, sender.id, content)).with_sender(sender)
		obs_metrics.inc_chat_send("http")
		if handler is not None:
			await handler.deliver_http_message(chat, message, sender)
		logger.info("chat_message_sent", extra={"chat_id": chat.id, "message_id": message.id})
		return MessageResponse.from_record(message)

	async def mark_read(self, auth_user: AuthenticatedUser, chat_id: int) -> MarkReadResponse:
		chat = await self._participant_chat(auth_user, chat_id)
		updated = await self._repo.mark_read(chat.id, auth_user.id)
		obs_metrics.inc_chat_read(updated)
		return MarkReadResponse(chat_id=chat.id, updated=updated)

	async def unread_count(self, auth_user: AuthenticatedUser) -> UnreadCountResponse:
		return UnreadCountResponse(unread_count=await self._repo.unread_count(auth_user.id))

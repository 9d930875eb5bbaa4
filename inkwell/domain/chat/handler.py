"""Async driver for chat sessions.

Resolves data through the chat repository, feeds it to the pure transitions
in ``session`` and executes the effects they return, in order, against the
broadcaster and the presence registry.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from redis.exceptions import RedisError

from inkwell.infra import rate_limit
from inkwell.infra.postgres import PERSISTENCE_ERRORS
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

from . import session as transitions
from .broadcast import Broadcaster
from .models import ChatRecord, ChatUser, MessageRecord
from .presence import PresenceRegistry
from .repo import ChatRepository, chat_repository
from .session import (
	Broadcast,
	Effect,
	Emit,
	Publish,
	RegisterPresence,
	SessionState,
	Subscribe,
	UnregisterPresence,
	Unsubscribe,
)

logger = logging.getLogger(__name__)

SendLimiter = Callable[[int], Awaitable[bool]]


def redis_send_limiter(*, limit: int, window_seconds: int) -> SendLimiter:
	"""Fixed-window limiter on chat sends per user, backed by redis."""

	async def _allow(user_id: int) -> bool:
		try:
			result = await rate_limit.hit("chat_send", str(user_id), limit=limit, window_seconds=window_seconds)
		except RedisError:
			logger.warning("chat_rate_limit_unavailable", extra={"sender_id": user_id}, exc_info=True)
			return True
		if not result.allowed:
			logger.info("chat_rate_limited", extra={"sender_id": user_id, "reset_in": result.reset_in})
		return result.allowed

	return _allow


def _coerce_id(value: Any) -> Optional[int]:
	if isinstance(value, bool):
		return None
	try:
		result = int(str(value).strip())
	except (TypeError, ValueError):
		return None
	return result if result > 0 else None


def _field(payload: Any, key: str) -> Any:
	if isinstance(payload, dict):
		return payload.get(key)
	return None


class MessagingSessionHandler:
	def __init__(
		self,
		broadcaster: Broadcaster,
		presence: PresenceRegistry,
		repository: Optional[ChatRepository] = None,
		*,
		limiter: Optional[SendLimiter] = None,
		max_length: Optional[int] = None,
		preview_length: Optional[int] = None,
	) -> None:
		self._broadcaster = broadcaster
		self._presence = presence
		self._repo = repository
		self._limiter = limiter
		self._max_length = max_length or settings.chat_message_max_length
		self._preview_length = preview_length or settings.chat_preview_length
		self._sessions: Dict[str, SessionState] = {}

	@property
	def presence(self) -> PresenceRegistry:
		return self._presence

	@property
	def repository(self) -> ChatRepository:
		return self._repo or chat_repository()

	def session(self, sid: str) -> Optional[SessionState]:
		return self._sessions.get(sid)

	async def allow_send(self, user_id: int) -> bool:
		return self._limiter is None or await self._limiter(user_id)

	def _state(self, sid: str) -> Optional[SessionState]:
		return self._sessions.get(sid)

	async def _apply(self, sid: str, state: SessionState, effects: Iterable[Effect]) -> None:
		# A disconnect can land while an operation awaits the repository. The
		# connection is gone then, so nothing may bind presence or channels to it.
		if sid not in self._sessions:
			effects = [e for e in effects if not isinstance(e, (RegisterPresence, Subscribe))]
		else:
			self._sessions[sid] = state
		await self._execute(sid, effects)

	async def _execute(self, sid: Optional[str], effects: Iterable[Effect]) -> None:
		for effect in effects:
			if isinstance(effect, Emit):
				target = effect.to or sid
				if target is not None:
					await self._broadcaster.send(target, effect.event, effect.payload)
			elif isinstance(effect, Publish):
				await self._broadcaster.publish(list(effect.channels), effect.event, effect.payload)
			elif isinstance(effect, Broadcast):
				await self._broadcaster.broadcast(effect.event, effect.payload, skip_sid=effect.skip_sid)
			elif isinstance(effect, Subscribe):
				await self._broadcaster.subscribe(sid, effect.channel)
			elif isinstance(effect, Unsubscribe):
				await self._broadcaster.unsubscribe(sid, effect.channel)
			elif isinstance(effect, RegisterPresence):
				self._presence.register(effect.user_id, sid)
			elif isinstance(effect, UnregisterPresence):
				self._presence.unregister(effect.user_id)

	async def _fail(self, sid: str, message: str) -> None:
		state = self._state(sid)
		if state is None:
			return
		await self._apply(sid, *transitions.fail(state, message))

	async def connect(self, sid: str) -> SessionState:
		state = transitions.connected(sid)
		self._sessions[sid] = state
		return state

	async def authenticate(self, sid: str, raw_user_id: Any) -> None:
		state = self._state(sid)
		if state is None:
			return
		user_id = _coerce_id(raw_user_id)
		if user_id is None:
			await self._apply(sid, *transitions.auth_failed(state, "Invalid user"))
			return
		try:
			user = await self.repository.get_user(user_id)
		except PERSISTENCE_ERRORS:
			logger.exception("chat_authenticate_failed", extra={"user_id": user_id})
			await self._apply(sid, *transitions.auth_failed(state, "Authentication failed"))
			return
		if user is None:
			await self._apply(sid, *transitions.auth_failed(state, "Invalid user"))
			return
		state = self._state(sid)
		if state is None:
			return
		previous = self._presence.lookup(state.user.id) if state.user is not None else None
		await self._apply(sid, *transitions.authenticated(state, user, previous_presence=previous))
		logger.info("chat_authenticated", extra={"user_id": user.id})

	async def join_chat(self, sid: str, raw_chat_id: Any) -> None:
		chat_id = _coerce_id(raw_chat_id)
		if chat_id is None:
			return
		state = self._state(sid)
		if state is None:
			return
		await self._apply(sid, *transitions.join_chat(state, chat_id))

	async def leave_chat(self, sid: str, raw_chat_id: Any) -> None:
		chat_id = _coerce_id(raw_chat_id)
		if chat_id is None:
			return
		state = self._state(sid)
		if state is None:
			return
		await self._apply(sid, *transitions.leave_chat(state, chat_id))

	async def _participant_chat(self, state: SessionState, chat_id: int) -> Optional[ChatRecord]:
		chat = await self.repository.get_chat(chat_id)
		if chat is None or not chat.has_participant(state.user.id):
			return None
		return chat

	async def send_message(self, sid: str, payload: Any) -> Optional[MessageRecord]:
		state = self._state(sid)
		if state is None:
			return None
		if not state.is_authenticated:
			await self._fail(sid, "Not authenticated")
			return None
		chat_id = _coerce_id(_field(payload, "chatId"))
		content = _field(payload, "content")
		if chat_id is None:
			obs_metrics.inc_chat_send_reject("invalid")
			await self._fail(sid, "Invalid chat")
			return None
		if not isinstance(content, str) or not content.strip():
			obs_metrics.inc_chat_send_reject("invalid")
			await self._fail(sid, "Message content is required")
			return None
		if len(content) > self._max_length:
			obs_metrics.inc_chat_send_reject("too_long")
			await self._fail(sid, "Message too long")
			return None
		if not await self.allow_send(state.user.id):
			obs_metrics.inc_chat_send_reject("rate_limited")
			await self._fail(sid, "Rate limited")
			return None

		message: Optional[MessageRecord] = None
		try:
			chat = await self.repository.get_chat(chat_id)
			if chat is not None and chat.has_participant(state.user.id):
				message = await self.repository.create_message(chat.id, state.user.id, content)
		except PERSISTENCE_ERRORS:
			logger.exception("chat_send_failed", extra={"chat_id": chat_id, "sender_id": state.user.id})
			obs_metrics.inc_chat_send_reject("persistence")
			await self._fail(sid, "Failed to send message")
			return None
		if chat is None:
			obs_metrics.inc_chat_send_reject("not_found")
			await self._fail(sid, "Chat not found")
			return None
		if message is None:
			obs_metrics.inc_chat_send_reject("not_authorized")
			await self._fail(sid, "Not authorized")
			return None

		message = message.with_sender(state.user)
		recipient_sid = self._presence.lookup(chat.other_participant(state.user.id))
		state, effects = transitions.message_sent(
			state,
			chat,
			message,
			recipient_sid=recipient_sid,
			preview_length=self._preview_length,
		)
		await self._apply(sid, state, effects)
		obs_metrics.inc_chat_send("socket")
		self._count_notifications(effects)
		logger.info("chat_message_sent", extra={"chat_id": chat.id, "message_id": message.id})
		return message

	async def deliver_http_message(self, chat: ChatRecord, message: MessageRecord, sender: ChatUser) -> None:
		"""Fan out a message stored through the HTTP surface to open sockets."""
		effects = transitions.plan_message_fanout(
			chat,
			message.with_sender(sender),
			sender,
			sender_sid=None,
			recipient_sid=self._presence.lookup(chat.other_participant(sender.id)),
			preview_length=self._preview_length,
		)
		await self._execute(None, effects)
		self._count_notifications(effects)

	@staticmethod
	def _count_notifications(effects: Iterable[Effect]) -> None:
		for effect in effects:
			if isinstance(effect, Emit) and effect.event == "message_notification":
				obs_metrics.inc_chat_notification()

	async def _typing(self, sid: str, payload: Any, *, started: bool) -> None:
		state = self._state(sid)
		chat_id = _coerce_id(_field(payload, "chatId"))
		if state is None or not state.is_authenticated or chat_id is None:
			return
		try:
			chat = await self._participant_chat(state, chat_id)
		except PERSISTENCE_ERRORS:
			logger.warning("chat_typing_lookup_failed", extra={"chat_id": chat_id}, exc_info=True)
			return
		if chat is None:
			return
		await self._apply(sid, *transitions.typing(state, chat, started=started))

	async def typing_start(self, sid: str, payload: Any) -> None:
		await self._typing(sid, payload, started=True)

	async def typing_stop(self, sid: str, payload: Any) -> None:
		await self._typing(sid, payload, started=False)

	async def mark_read(self, sid: str, payload: Any) -> int:
		state = self._state(sid)
		if state is None or not state.is_authenticated:
			return 0
		chat_id = _coerce_id(_field(payload, "chatId"))
		if chat_id is None:
			await self._fail(sid, "Invalid chat")
			return 0
		updated: Optional[int] = None
		try:
			chat = await self.repository.get_chat(chat_id)
			if chat is not None and chat.has_participant(state.user.id):
				updated = await self.repository.mark_read(chat.id, state.user.id)
		except PERSISTENCE_ERRORS:
			logger.exception("chat_mark_read_failed", extra={"chat_id": chat_id})
			await self._fail(sid, "Failed to mark messages as read")
			return 0
		if chat is None:
			await self._fail(sid, "Chat not found")
			return 0
		if updated is None:
			await self._fail(sid, "Not authorized")
			return 0
		obs_metrics.inc_chat_read(updated)
		await self._apply(sid, *transitions.messages_read(state, chat))
		return updated

	async def disconnect(self, sid: str) -> None:
		state = self._sessions.get(sid)
		if state is None:
			return
		state, effects = transitions.disconnected(state)
		await self._execute(sid, effects)
		self._sessions.pop(sid, None)
		if state.user is not None and effects:
			logger.info("chat_disconnected", extra={"user_id": state.user.id})

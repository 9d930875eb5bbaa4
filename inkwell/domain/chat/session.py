"""Per-connection chat session as a pure state machine.

Every transition takes the current ``SessionState`` plus already-resolved
data and returns ``(new_state, effects)``. Nothing here performs I/O; the
handler persists first, then runs the returned effects in order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from .broadcast import chat_channel, user_channel
from .models import ChatRecord, ChatUser, MessageRecord


class Phase(str, Enum):
	UNAUTHENTICATED = "unauthenticated"
	AUTHENTICATED = "authenticated"
	DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionState:
	sid: str
	phase: Phase = Phase.UNAUTHENTICATED
	user: Optional[ChatUser] = None
	joined: frozenset = field(default_factory=frozenset)

	@property
	def is_authenticated(self) -> bool:
		return self.phase is Phase.AUTHENTICATED and self.user is not None


@dataclass(frozen=True)
class Emit:
	"""Send to a single connection; ``to`` defaults to the session's own sid."""

	event: str
	payload: dict
	to: Optional[str] = None


@dataclass(frozen=True)
class Publish:
	channels: Tuple[str, ...]
	event: str
	payload: dict


@dataclass(frozen=True)
class Broadcast:
	"""Send to every connection except ``skip_sid``."""

	event: str
	payload: dict
	skip_sid: Optional[str] = None


@dataclass(frozen=True)
class Subscribe:
	channel: str


@dataclass(frozen=True)
class Unsubscribe:
	channel: str


@dataclass(frozen=True)
class RegisterPresence:
	user_id: int


@dataclass(frozen=True)
class UnregisterPresence:
	user_id: int


Effect = Union[Emit, Publish, Broadcast, Subscribe, Unsubscribe, RegisterPresence, UnregisterPresence]
Transition = Tuple[SessionState, List[Effect]]


def connected(sid: str) -> SessionState:
	return SessionState(sid=sid)


def authenticated(state: SessionState, user: ChatUser, *, previous_presence: Optional[str] = None) -> Transition:
	"""Bind the connection to ``user``.

	``previous_presence`` is the sid the registry holds for the user this
	connection was bound to before, if any. Re-binding drops that mapping only
	when it still points here, so a newer tab of the old user keeps its own.
	"""
	effects: List[Effect] = []
	if state.user is not None and state.user.id != user.id:
		if previous_presence == state.sid:
			effects.append(UnregisterPresence(state.user.id))
		effects.append(Unsubscribe(user_channel(state.user.id)))
	effects.extend(
		[
			RegisterPresence(user.id),
			Subscribe(user_channel(user.id)),
			Broadcast(
				"user_online",
				{"userId": user.id, "username": user.username, "displayName": user.display_name},
				skip_sid=state.sid,
			),
			Emit("authenticated", {"user": user.to_dict()}),
		]
	)
	return replace(state, phase=Phase.AUTHENTICATED, user=user), effects


def auth_failed(state: SessionState, message: str) -> Transition:
	return state, [Emit("auth_error", {"message": message})]


def fail(state: SessionState, message: str) -> Transition:
	return state, [Emit("error", {"message": message})]


def join_chat(state: SessionState, chat_id: int) -> Transition:
	if not state.is_authenticated:
		return state, []
	return replace(state, joined=state.joined | {chat_id}), [Subscribe(chat_channel(chat_id))]


def leave_chat(state: SessionState, chat_id: int) -> Transition:
	return replace(state, joined=state.joined - {chat_id}), [Unsubscribe(chat_channel(chat_id))]


def plan_message_fanout(
	chat: ChatRecord,
	message: MessageRecord,
	sender: ChatUser,
	*,
	sender_sid: Optional[str],
	recipient_sid: Optional[str],
	preview_length: int = 50,
) -> List[Effect]:
	"""Effects for a stored message: both user channels, plus a notification
	to the other participant's registered connection when it is not the
	sender's own."""
	effects: List[Effect] = [
		Publish(
			tuple(user_channel(user_id) for user_id in chat.participants()),
			"new_message",
			{"chatId": chat.id, "message": message.to_dict()},
		)
	]
	if recipient_sid is not None and recipient_sid != sender_sid:
		effects.append(
			Emit(
				"message_notification",
				{
					"chatId": chat.id,
					"sender": sender.to_dict(),
					"preview": message.content[:preview_length],
				},
				to=recipient_sid,
			)
		)
	return effects


def message_sent(
	state: SessionState,
	chat: ChatRecord,
	message: MessageRecord,
	*,
	recipient_sid: Optional[str],
	preview_length: int = 50,
) -> Transition:
	if not state.is_authenticated:
		return fail(state, "Not authenticated")
	effects = plan_message_fanout(
		chat,
		message,
		state.user,
		sender_sid=state.sid,
		recipient_sid=recipient_sid,
		preview_length=preview_length,
	)
	return state, effects


def typing(state: SessionState, chat: ChatRecord, *, started: bool) -> Transition:
	if not state.is_authenticated or not chat.has_participant(state.user.id):
		return state, []
	target = (user_channel(chat.other_participant(state.user.id)),)
	if started:
		payload = {"chatId": chat.id, "userId": state.user.id, "username": state.user.username}
		return state, [Publish(target, "user_typing", payload)]
	return state, [Publish(target, "user_stopped_typing", {"chatId": chat.id, "userId": state.user.id})]


def messages_read(state: SessionState, chat: ChatRecord) -> Transition:
	if not state.is_authenticated:
		return state, []
	target = (user_channel(chat.other_participant(state.user.id)),)
	return state, [Publish(target, "messages_read", {"chatId": chat.id, "readBy": state.user.id})]


def disconnected(state: SessionState) -> Transition:
	if state.phase is Phase.DISCONNECTED:
		return state, []
	effects: List[Effect] = []
	if state.user is not None:
		effects.append(UnregisterPresence(state.user.id))
		effects.append(
			Broadcast(
				"user_offline",
				{"userId": state.user.id, "username": state.user.username},
				skip_sid=state.sid,
			)
		)
	return replace(state, phase=Phase.DISCONNECTED, joined=frozenset()), effects

"""Socket.IO namespace for direct chat."""

from __future__ import annotations

from typing import Any, Awaitable, Optional

import socketio

from inkwell.obs import logging as obs_logging
from inkwell.obs import metrics as obs_metrics

from .broadcast import SocketIOBroadcaster
from .handler import MessagingSessionHandler, SendLimiter
from .presence import PresenceRegistry
from .repo import ChatRepository

_namespace: "ChatNamespace" | None = None


class ChatNamespace(socketio.AsyncNamespace):
	"""Maps client events onto the messaging session handler."""

	def __init__(
		self,
		namespace: str = "/",
		*,
		presence: Optional[PresenceRegistry] = None,
		repository: Optional[ChatRepository] = None,
		limiter: Optional[SendLimiter] = None,
	) -> None:
		super().__init__(namespace)
		self.handler = MessagingSessionHandler(
			SocketIOBroadcaster(self),
			presence or PresenceRegistry(),
			repository,
			limiter=limiter,
		)

	async def _dispatch(self, sid: str, event: str, call: Awaitable[Any]) -> None:
		obs_metrics.socket_event(self.namespace, event)
		state = self.handler.session(sid)
		user_id = str(state.user.id) if state is not None and state.user is not None else None
		tokens = obs_logging.bind_context(sid=sid, user_id=user_id)
		try:
			await call
		finally:
			obs_logging.reset_context(tokens)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		await self.handler.connect(sid)

	async def on_disconnect(self, sid: str, reason: Any = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		await self._dispatch(sid, "disconnect", self.handler.disconnect(sid))

	async def on_authenticate(self, sid: str, user_id: Any = None) -> None:
		await self._dispatch(sid, "authenticate", self.handler.authenticate(sid, user_id))

	async def on_join_chat(self, sid: str, chat_id: Any = None) -> None:
		await self._dispatch(sid, "join_chat", self.handler.join_chat(sid, chat_id))

	async def on_leave_chat(self, sid: str, chat_id: Any = None) -> None:
		await self._dispatch(sid, "leave_chat", self.handler.leave_chat(sid, chat_id))

	async def on_send_message(self, sid: str, payload: Any = None) -> None:
		await self._dispatch(sid, "send_message", self.handler.send_message(sid, payload))

	async def on_typing_start(self, sid: str, payload: Any = None) -> None:
		await self._dispatch(sid, "typing_start", self.handler.typing_start(sid, payload))

	async def on_typing_stop(self, sid: str, payload: Any = None) -> None:
		await self._dispatch(sid, "typing_stop", self.handler.typing_stop(sid, payload))

	async def on_mark_read(self, sid: str, payload: Any = None) -> None:
		await self._dispatch(sid, "mark_read", self.handler.mark_read(sid, payload))


def set_namespace(namespace: Optional[ChatNamespace]) -> None:
	global _namespace
	_namespace = namespace


def get_handler() -> Optional[MessagingSessionHandler]:
	if _namespace is None:
		return None
	return _namespace.handler

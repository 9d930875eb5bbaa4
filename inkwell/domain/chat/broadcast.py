"""Channel-based delivery used by the chat session handler.

The handler only speaks to a ``Broadcaster``. ``SocketIOBroadcaster`` maps the
calls onto Socket.IO rooms; ``InMemoryBroadcaster`` keeps the same semantics
in-process and records every delivery per sid for tests.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple, Union

import socketio

Channels = Union[str, Sequence[str]]


def user_channel(user_id: int) -> str:
	return f"user_{user_id}"


def chat_channel(chat_id: int) -> str:
	return f"chat_{chat_id}"


def _as_list(channels: Channels) -> List[str]:
	if isinstance(channels, str):
		return [channels]
	return list(channels)


class Broadcaster(Protocol):
	async def subscribe(self, sid: str, channel: str) -> None: ...

	async def unsubscribe(self, sid: str, channel: str) -> None: ...

	async def publish(
		self, channels: Channels, event: str, payload: dict, *, skip_sid: Optional[str] = None
	) -> None: ...

	async def send(self, sid: str, event: str, payload: dict) -> None: ...

	async def broadcast(self, event: str, payload: dict, *, skip_sid: Optional[str] = None) -> None: ...


class InMemoryBroadcaster:
	"""Single-process broadcaster; a sid in several target channels gets one copy."""

	def __init__(self) -> None:
		self._connected: Dict[str, None] = {}
		self._rooms: Dict[str, Set[str]] = {}
		self.deliveries: Dict[str, List[Tuple[str, Any]]] = {}

	def connect(self, sid: str) -> None:
		self._connected[sid] = None
		self.deliveries.setdefault(sid, [])

	def disconnect(self, sid: str) -> None:
		self._connected.pop(sid, None)
		for members in self._rooms.values():
			members.discard(sid)

	def members(self, channel: str) -> Set[str]:
		return set(self._rooms.get(channel, ()))

	def events(self, sid: str, name: Optional[str] = None) -> List[Tuple[str, Any]]:
		return [item for item in self.deliveries.get(sid, []) if name is None or item[0] == name]

	def payloads(self, sid: str, name: str) -> List[Any]:
		return [payload for _, payload in self.events(sid, name)]

	def _deliver(self, sids: Iterable[str], event: str, payload: Any) -> None:
		for sid in sids:
			self.deliveries.setdefault(sid, []).append((event, payload))

	async def subscribe(self, sid: str, channel: str) -> None:
		self._rooms.setdefault(channel, set()).add(sid)

	async def unsubscribe(self, sid: str, channel: str) -> None:
		self._rooms.get(channel, set()).discard(sid)

	async def publish(
		self, channels: Channels, event: str, payload: dict, *, skip_sid: Optional[str] = None
	) -> None:
		targets: Set[str] = set()
		for channel in _as_list(channels):
			targets.update(self._rooms.get(channel, ()))
		targets.discard(skip_sid)
		# Stable order: connection order.
		self._deliver([sid for sid in self._connected if sid in targets], event, payload)

	async def send(self, sid: str, event: str, payload: dict) -> None:
		if sid in self._connected:
			self._deliver([sid], event, payload)

	async def broadcast(self, event: str, payload: dict, *, skip_sid: Optional[str] = None) -> None:
		self._deliver([sid for sid in self._connected if sid != skip_sid], event, payload)


class SocketIOBroadcaster:
	"""Broadcaster backed by the rooms of one Socket.IO namespace."""

	def __init__(self, namespace: socketio.AsyncNamespace) -> None:
		self._namespace = namespace

	async def subscribe(self, sid: str, channel: str) -> None:
		await self._namespace.enter_room(sid, channel)

	async def unsubscribe(self, sid: str, channel: str) -> None:
		await self._namespace.leave_room(sid, channel)

	async def publish(
		self, channels: Channels, event: str, payload: dict, *, skip_sid: Optional[str] = None
	) -> None:
		rooms = _as_list(channels)
		target = rooms[0] if len(rooms) == 1 else rooms
		await self._namespace.emit(event, payload, room=target, skip_sid=skip_sid)

	async def send(self, sid: str, event: str, payload: dict) -> None:
		await self._namespace.emit(event, payload, room=sid)

	async def broadcast(self, event: str, payload: dict, *, skip_sid: Optional[str] = None) -> None:
		await self._namespace.emit(event, payload, skip_sid=skip_sid)

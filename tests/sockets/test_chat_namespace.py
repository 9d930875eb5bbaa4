from unittest.mock import AsyncMock

import pytest
import socketio

from inkwell.domain.chat import sockets
from inkwell.domain.chat.presence import PresenceRegistry
from inkwell.domain.chat.repo import MemoryChatRepository
from inkwell.domain.chat.sockets import ChatNamespace


@pytest.fixture
def namespace(store):
    server = socketio.AsyncServer(async_mode="asgi")
    ns = ChatNamespace(presence=PresenceRegistry(), repository=MemoryChatRepository(store))
    server.register_namespace(ns)
    ns.emit = AsyncMock()
    ns.enter_room = AsyncMock()
    ns.leave_room = AsyncMock()
    return ns


def _emitted(ns, event):
    return [call for call in ns.emit.await_args_list if call.args[0] == event]


@pytest.mark.asyncio
async def test_authenticate_joins_user_room_and_announces(namespace, store):
    alice = store.add_user("alice")["id"]

    await namespace.trigger_event("connect", "sid-1", {})
    await namespace.trigger_event("authenticate", "sid-1", alice)

    namespace.enter_room.assert_any_await("sid-1", f"user_{alice}")
    online = _emitted(namespace, "user_online")
    assert online and online[0].kwargs["skip_sid"] == "sid-1"
    authenticated = _emitted(namespace, "authenticated")
    assert authenticated[0].kwargs["room"] == "sid-1"
    assert namespace.handler.presence.lookup(alice) == "sid-1"


@pytest.mark.asyncio
async def test_send_message_publishes_to_both_user_rooms(namespace, store):
    alice = store.add_user("alice")["id"]
    bob = store.add_user("bob")["id"]
    chat = store.add_chat(alice, bob)["id"]
    await namespace.trigger_event("connect", "sid-a", {})
    await namespace.trigger_event("authenticate", "sid-a", alice)
    await namespace.trigger_event("connect", "sid-b", {})
    await namespace.trigger_event("authenticate", "sid-b", bob)
    namespace.emit.reset_mock()

    await namespace.trigger_event("send_message", "sid-a", {"chatId": chat, "content": "hey"})

    published = _emitted(namespace, "new_message")
    assert len(published) == 1
    assert sorted(published[0].kwargs["room"]) == sorted([f"user_{alice}", f"user_{bob}"])
    notification = _emitted(namespace, "message_notification")
    assert notification[0].kwargs["room"] == "sid-b"
    assert notification[0].args[1]["preview"] == "hey"
    assert len(store.messages) == 1


@pytest.mark.asyncio
async def test_unauthenticated_send_emits_error(namespace):
    await namespace.trigger_event("connect", "sid-1", {})

    await namespace.trigger_event("send_message", "sid-1", {"chatId": 1, "content": "hey"})

    errors = _emitted(namespace, "error")
    assert errors[0].args[1] == {"message": "Not authenticated"}


@pytest.mark.asyncio
async def test_join_and_leave_chat_rooms(namespace, store):
    alice = store.add_user("alice")["id"]
    await namespace.trigger_event("connect", "sid-1", {})
    await namespace.trigger_event("authenticate", "sid-1", alice)

    await namespace.trigger_event("join_chat", "sid-1", 12)
    await namespace.trigger_event("leave_chat", "sid-1", "12")

    namespace.enter_room.assert_any_await("sid-1", "chat_12")
    namespace.leave_room.assert_awaited_with("sid-1", "chat_12")


@pytest.mark.asyncio
async def test_disconnect_announces_offline(namespace, store):
    alice = store.add_user("alice")["id"]
    await namespace.trigger_event("connect", "sid-1", {})
    await namespace.trigger_event("authenticate", "sid-1", alice)

    await namespace.trigger_event("disconnect", "sid-1")

    offline = _emitted(namespace, "user_offline")
    assert offline[0].args[1] == {"userId": alice, "username": "alice"}
    assert namespace.handler.presence.lookup(alice) is None


@pytest.mark.asyncio
async def test_registered_namespace_exposes_handler(namespace, monkeypatch):
    monkeypatch.setattr(sockets, "_namespace", None)
    assert sockets.get_handler() is None

    sockets.set_namespace(namespace)

    assert sockets.get_handler() is namespace.handler

import asyncio
from types import SimpleNamespace

import pytest

from inkwell.domain.chat.broadcast import InMemoryBroadcaster
from inkwell.domain.chat.handler import MessagingSessionHandler
from inkwell.domain.chat.presence import PresenceRegistry
from inkwell.domain.chat.repo import MemoryChatRepository


@pytest.fixture
def env(store):
    alice = store.add_user("alice", display_name="Alice")
    bob = store.add_user("bob", display_name="Bob")
    carol = store.add_user("carol", display_name="Carol")
    chat = store.add_chat(alice["id"], bob["id"])
    broadcaster = InMemoryBroadcaster()
    presence = PresenceRegistry()
    handler = MessagingSessionHandler(broadcaster, presence, MemoryChatRepository(store))
    return SimpleNamespace(
        store=store,
        alice=alice["id"],
        bob=bob["id"],
        carol=carol["id"],
        chat=chat["id"],
        broadcaster=broadcaster,
        presence=presence,
        handler=handler,
    )


async def _open(env, sid, user_id=None):
    env.broadcaster.connect(sid)
    await env.handler.connect(sid)
    if user_id is not None:
        await env.handler.authenticate(sid, user_id)


@pytest.mark.asyncio
async def test_authenticate_announces_online_to_others_only(env):
    await _open(env, "sid-b", env.bob)
    await _open(env, "sid-a", env.alice)

    assert env.presence.lookup(env.alice) == "sid-a"
    assert env.broadcaster.payloads("sid-b", "user_online") == [
        {"userId": env.alice, "username": "alice", "displayName": "Alice"}
    ]
    assert env.broadcaster.payloads("sid-a", "user_online") == []
    assert env.broadcaster.payloads("sid-a", "authenticated")[0]["user"]["username"] == "alice"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["abc", 999, None])
async def test_authenticate_rejects_unknown_or_malformed_user(env, raw):
    await _open(env, "sid-x")

    await env.handler.authenticate("sid-x", raw)

    assert env.broadcaster.payloads("sid-x", "auth_error") == [{"message": "Invalid user"}]
    assert len(env.presence) == 0


@pytest.mark.asyncio
async def test_send_fans_out_to_both_users_and_notifies_recipient(env):
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b1", env.bob)
    await env.handler.join_chat("sid-b1", env.chat)
    await _open(env, "sid-b2", env.bob)

    await env.handler.send_message("sid-a", {"chatId": env.chat, "content": "hello"})

    assert len(env.store.messages) == 1
    for sid in ("sid-a", "sid-b1", "sid-b2"):
        delivered = env.broadcaster.payloads(sid, "new_message")
        assert len(delivered) == 1
        assert delivered[0]["chatId"] == env.chat
        assert delivered[0]["message"]["content"] == "hello"
        assert delivered[0]["message"]["sender_id"] == env.alice
    # The sender never gets a notification; bob gets exactly one, on the
    # connection registered last.
    assert env.broadcaster.payloads("sid-a", "message_notification") == []
    assert env.broadcaster.payloads("sid-b1", "message_notification") == []
    notifications = env.broadcaster.payloads("sid-b2", "message_notification")
    assert len(notifications) == 1
    assert notifications[0]["preview"] == "hello"
    assert notifications[0]["sender"]["username"] == "alice"


@pytest.mark.asyncio
async def test_send_to_offline_recipient_only_reaches_sender(env):
    await _open(env, "sid-a", env.alice)

    await env.handler.send_message("sid-a", {"chatId": env.chat, "content": "anyone?"})

    assert len(env.store.messages) == 1
    assert len(env.broadcaster.payloads("sid-a", "new_message")) == 1
    assert env.broadcaster.payloads("sid-a", "message_notification") == []


@pytest.mark.asyncio
async def test_send_preserves_content_verbatim_and_truncates_preview(env):
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b", env.bob)
    content = "  padded " + "y" * 60

    await env.handler.send_message("sid-a", {"chatId": env.chat, "content": content})

    stored = next(iter(env.store.messages.values()))
    assert stored["content"] == content
    assert env.broadcaster.payloads("sid-b", "message_notification")[0]["preview"] == content[:50]


@pytest.mark.asyncio
async def test_send_to_unknown_chat_persists_nothing(env):
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b", env.bob)

    await env.handler.send_message("sid-a", {"chatId": 999, "content": "hello"})

    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-a", "error") == [{"message": "Chat not found"}]
    assert env.broadcaster.payloads("sid-b", "new_message") == []


@pytest.mark.asyncio
async def test_send_by_non_participant_is_rejected(env):
    await _open(env, "sid-c", env.carol)

    await env.handler.send_message("sid-c", {"chatId": env.chat, "content": "hi"})

    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-c", "error") == [{"message": "Not authorized"}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"chatId": 1, "content": "   "}, "Message content is required"),
        ({"chatId": 1}, "Message content is required"),
        ({"content": "hi"}, "Invalid chat"),
        ({"chatId": 1, "content": "z" * 4001}, "Message too long"),
    ],
)
async def test_send_validation_errors(env, payload, message):
    await _open(env, "sid-a", env.alice)

    await env.handler.send_message("sid-a", payload)

    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-a", "error") == [{"message": message}]


@pytest.mark.asyncio
async def test_send_requires_authentication(env):
    await _open(env, "sid-x")

    await env.handler.send_message("sid-x", {"chatId": env.chat, "content": "hi"})

    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-x", "error") == [{"message": "Not authenticated"}]


@pytest.mark.asyncio
async def test_send_rate_limited(env):
    async def deny(_user_id):
        return False

    handler = MessagingSessionHandler(
        env.broadcaster, env.presence, MemoryChatRepository(env.store), limiter=deny
    )
    env.broadcaster.connect("sid-a")
    await handler.connect("sid-a")
    await handler.authenticate("sid-a", env.alice)

    await handler.send_message("sid-a", {"chatId": env.chat, "content": "hi"})

    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-a", "error") == [{"message": "Rate limited"}]


@pytest.mark.asyncio
async def test_persistence_failure_reports_error_without_fanout(env):
    class FailingRepo(MemoryChatRepository):
        async def create_message(self, chat_id, sender_id, content):
            raise OSError("connection reset")

    handler = MessagingSessionHandler(env.broadcaster, env.presence, FailingRepo(env.store))
    for sid, user_id in (("sid-a", env.alice), ("sid-b", env.bob)):
        env.broadcaster.connect(sid)
        await handler.connect(sid)
        await handler.authenticate(sid, user_id)

    await handler.send_message("sid-a", {"chatId": env.chat, "content": "hi"})

    assert env.broadcaster.payloads("sid-a", "error") == [{"message": "Failed to send message"}]
    assert env.broadcaster.payloads("sid-a", "new_message") == []
    assert env.broadcaster.payloads("sid-b", "new_message") == []
    assert env.broadcaster.payloads("sid-b", "error") == []


@pytest.mark.asyncio
async def test_mark_read_flips_only_other_participants_unread_messages(env):
    store = env.store
    from_bob_1 = store.add_message(env.chat, env.bob, "one")
    from_bob_2 = store.add_message(env.chat, env.bob, "two")
    from_bob_read = store.add_message(env.chat, env.bob, "old", is_read=True)
    from_alice = store.add_message(env.chat, env.alice, "mine")
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b", env.bob)

    updated = await env.handler.mark_read("sid-a", {"chatId": env.chat})

    assert updated == 2
    for row in (from_bob_1, from_bob_2, from_bob_read):
        assert store.messages[row["id"]]["is_read"] is True
    assert store.messages[from_alice["id"]]["is_read"] is False
    assert env.broadcaster.payloads("sid-b", "messages_read") == [{"chatId": env.chat, "readBy": env.alice}]
    assert env.broadcaster.payloads("sid-a", "messages_read") == []

    # Nothing left to flip; the receipt is still sent.
    assert await env.handler.mark_read("sid-a", {"chatId": env.chat}) == 0
    assert len(env.broadcaster.payloads("sid-b", "messages_read")) == 2


@pytest.mark.asyncio
async def test_mark_read_unknown_chat_reports_error(env):
    await _open(env, "sid-a", env.alice)

    assert await env.handler.mark_read("sid-a", {"chatId": 404}) == 0
    assert env.broadcaster.payloads("sid-a", "error") == [{"message": "Chat not found"}]


@pytest.mark.asyncio
async def test_typing_reaches_other_participant_only(env):
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b", env.bob)
    await _open(env, "sid-c", env.carol)

    await env.handler.typing_start("sid-a", {"chatId": env.chat})
    await env.handler.typing_start("sid-a", {"chatId": env.chat})
    await env.handler.typing_stop("sid-a", {"chatId": env.chat})

    assert len(env.broadcaster.payloads("sid-b", "user_typing")) == 2
    assert env.broadcaster.payloads("sid-b", "user_stopped_typing") == [{"chatId": env.chat, "userId": env.alice}]
    assert env.broadcaster.payloads("sid-a", "user_typing") == []
    assert env.broadcaster.payloads("sid-c", "user_typing") == []


@pytest.mark.asyncio
async def test_typing_on_foreign_chat_is_dropped(env):
    await _open(env, "sid-c", env.carol)
    await _open(env, "sid-b", env.bob)

    await env.handler.typing_start("sid-c", {"chatId": env.chat})

    assert env.broadcaster.payloads("sid-b", "user_typing") == []
    assert env.broadcaster.payloads("sid-c", "error") == []


@pytest.mark.asyncio
async def test_disconnect_unregisters_and_announces_once(env):
    await _open(env, "sid-a", env.alice)
    await _open(env, "sid-b", env.bob)

    await env.handler.disconnect("sid-a")
    await env.handler.disconnect("sid-a")

    assert env.presence.lookup(env.alice) is None
    assert env.broadcaster.payloads("sid-b", "user_offline") == [{"userId": env.alice, "username": "alice"}]


@pytest.mark.asyncio
async def test_older_tab_disconnect_clears_newer_tab_presence(env):
    await _open(env, "sid-a1", env.alice)
    await _open(env, "sid-a2", env.alice)

    await env.handler.disconnect("sid-a1")

    assert env.presence.lookup(env.alice) is None


@pytest.mark.asyncio
async def test_join_chat_before_authentication_is_dropped(env):
    await _open(env, "sid-x")

    await env.handler.join_chat("sid-x", env.chat)

    assert env.broadcaster.members("chat_%d" % env.chat) == set()
    assert env.handler.session("sid-x").joined == frozenset()


@pytest.mark.asyncio
async def test_reauthenticating_as_another_user_releases_old_presence(env):
    carol_chat = env.store.add_chat(env.carol, env.alice)["id"]
    await _open(env, "sid-1", env.alice)
    await _open(env, "sid-c", env.carol)

    await env.handler.authenticate("sid-1", env.bob)
    await env.handler.send_message("sid-c", {"chatId": carol_chat, "content": "for alice"})

    assert env.presence.lookup(env.alice) is None
    assert env.presence.lookup(env.bob) == "sid-1"
    assert env.broadcaster.payloads("sid-1", "message_notification") == []
    assert env.broadcaster.payloads("sid-1", "new_message") == []


@pytest.mark.asyncio
async def test_reauthenticating_older_tab_keeps_newer_tab_presence(env):
    await _open(env, "sid-1", env.alice)
    await _open(env, "sid-2", env.alice)

    await env.handler.authenticate("sid-1", env.bob)

    assert env.presence.lookup(env.alice) == "sid-2"
    assert env.presence.lookup(env.bob) == "sid-1"


@pytest.mark.asyncio
async def test_events_from_unknown_connection_are_dropped(env):
    await env.handler.authenticate("sid-ghost", env.alice)
    await env.handler.send_message("sid-ghost", {"chatId": env.chat, "content": "hi"})
    await env.handler.join_chat("sid-ghost", env.chat)

    assert env.handler.session("sid-ghost") is None
    assert env.presence.lookup(env.alice) is None
    assert env.store.messages == {}
    assert env.broadcaster.payloads("sid-ghost", "error") == []


class _GatedRepo(MemoryChatRepository):
    """Parks the chosen call until the test releases it."""

    def __init__(self, store, gated):
        super().__init__(store)
        self.gated = gated
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def _gate(self, name):
        if name == self.gated:
            self.entered.set()
            await self.release.wait()

    async def get_user(self, user_id):
        await self._gate("get_user")
        return await super().get_user(user_id)

    async def create_message(self, chat_id, sender_id, content):
        await self._gate("create_message")
        return await super().create_message(chat_id, sender_id, content)


@pytest.mark.asyncio
async def test_disconnect_during_send_does_not_resurrect_session(env):
    repo = _GatedRepo(env.store, "create_message")
    handler = MessagingSessionHandler(env.broadcaster, env.presence, repo)
    for sid, user_id in (("sid-a", env.alice), ("sid-b", env.bob)):
        env.broadcaster.connect(sid)
        await handler.connect(sid)
        await handler.authenticate(sid, user_id)

    sending = asyncio.create_task(handler.send_message("sid-a", {"chatId": env.chat, "content": "late"}))
    await repo.entered.wait()
    await handler.disconnect("sid-a")
    repo.release.set()
    message = await sending

    assert message is not None
    assert handler.session("sid-a") is None
    assert env.presence.lookup(env.alice) is None
    # The stored message still reaches the other participant.
    assert [p["message"]["id"] for p in env.broadcaster.payloads("sid-b", "new_message")] == [message.id]


@pytest.mark.asyncio
async def test_disconnect_during_authenticate_registers_nothing(env):
    repo = _GatedRepo(env.store, "get_user")
    handler = MessagingSessionHandler(env.broadcaster, env.presence, repo)
    env.broadcaster.connect("sid-a")
    await handler.connect("sid-a")

    authenticating = asyncio.create_task(handler.authenticate("sid-a", env.alice))
    await repo.entered.wait()
    await handler.disconnect("sid-a")
    repo.release.set()
    await authenticating

    assert handler.session("sid-a") is None
    assert env.presence.lookup(env.alice) is None
    assert env.broadcaster.members("user_%d" % env.alice) == set()

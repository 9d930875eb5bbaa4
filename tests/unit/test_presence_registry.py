from inkwell.domain.chat.presence import PresenceRegistry


def test_register_is_last_writer_wins():
    registry = PresenceRegistry()
    registry.register(1, "sid-a")
    registry.register(1, "sid-b")

    assert registry.lookup(1) == "sid-b"
    assert len(registry) == 1


def test_unregister_absent_user_is_noop():
    registry = PresenceRegistry()
    registry.unregister(42)

    assert registry.lookup(42) is None
    assert not registry.is_online(42)


def test_unregister_clears_mapping_regardless_of_connection():
    registry = PresenceRegistry()
    registry.register(1, "sid-old")
    registry.register(1, "sid-new")
    registry.register(2, "sid-other")

    registry.unregister(1)

    assert registry.lookup(1) is None
    assert registry.online_user_ids() == [2]

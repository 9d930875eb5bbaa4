import pytest

from inkwell.domain.errors import UpstreamUnavailable
from inkwell.domain.feed.assembler import FeedAssembler
from inkwell.domain.feed.sessions import FeedSessionStore
from inkwell.domain.feed.state import FeedPageState, FeedSource
from inkwell.domain.posts.repo import MemoryPostRepository


def _seed(store):
    alice = store.add_user("alice")["id"]
    bob = store.add_user("bob")["id"]
    carol = store.add_user("carol")["id"]
    store.add_follow(alice, bob)
    ids = {"alice": [], "bob": [], "carol": []}
    for name, author in (("alice", alice), ("bob", bob)):
        for index in range(2):
            ids[name].append(store.add_post(author, f"{name} {index}")["id"])
    for index in range(10):
        ids["carol"].append(store.add_post(carol, f"carol {index}")["id"])
    store.add_post(alice, "draft", is_published=False)
    return alice, ids


@pytest.mark.asyncio
async def test_first_page_orders_sources_and_tops_up_from_global(store):
    alice, ids = _seed(store)
    assembler = FeedAssembler(MemoryPostRepository(store), page_size=5, floor=5, buffer=5)

    page = await assembler.assemble(alice)

    got = [item.id for item in page.items]
    newest_carol = list(reversed(ids["carol"]))
    assert got == list(reversed(ids["alice"])) + list(reversed(ids["bob"])) + newest_carol[:6]
    assert page.fallback is False
    assert page.has_more is True
    assert page.state.cursors[FeedSource.OWN].exhausted is True
    assert page.state.cursors[FeedSource.FOLLOWING].exhausted is True
    assert page.state.cursors[FeedSource.GLOBAL].offset == 6


@pytest.mark.asyncio
async def test_load_more_never_repeats_a_post(store):
    alice, _ = _seed(store)
    assembler = FeedAssembler(MemoryPostRepository(store), page_size=5, floor=5, buffer=5)

    seen = []
    page = await assembler.assemble(alice)
    seen.extend(item.id for item in page.items)
    pages = 1
    while page.has_more:
        page = await assembler.assemble(alice, page.state)
        seen.extend(item.id for item in page.items)
        pages += 1
        assert pages < 10

    assert len(seen) == len(set(seen))
    # Every published post shows up exactly once; the draft never does.
    assert len(seen) == 14
    assert page.items == []


@pytest.mark.asyncio
async def test_first_page_skips_global_when_floor_met(store):
    alice = store.add_user("alice")["id"]
    carol = store.add_user("carol")["id"]
    for index in range(6):
        store.add_post(alice, f"mine {index}")
    store.add_post(carol, "elsewhere")
    assembler = FeedAssembler(MemoryPostRepository(store), page_size=5, floor=5, buffer=5)

    page = await assembler.assemble(alice)

    assert len(page.items) == 5
    assert all(item.user_id == alice for item in page.items)
    assert page.state.cursors[FeedSource.GLOBAL].offset == 0


class _FlakyRepo(MemoryPostRepository):
    def __init__(self, store, failing):
        super().__init__(store)
        self.failing = set(failing)

    async def list_following(self, viewer_id, *, limit, offset):
        if "following" in self.failing:
            raise OSError("connection refused")
        return await super().list_following(viewer_id, limit=limit, offset=offset)

    async def list_global(self, viewer_id, *, limit, offset):
        if "global" in self.failing:
            self.failing.discard("global")
            raise OSError("connection refused")
        if "global_always" in self.failing:
            raise OSError("connection refused")
        return await super().list_global(viewer_id, limit=limit, offset=offset)


@pytest.mark.asyncio
async def test_failing_source_keeps_cursor_for_retry(store):
    alice, ids = _seed(store)
    repo = _FlakyRepo(store, {"following"})
    assembler = FeedAssembler(repo, page_size=5, floor=5, buffer=5)

    page = await assembler.assemble(alice)

    cursor = page.state.cursors[FeedSource.FOLLOWING]
    assert (cursor.offset, cursor.exhausted) == (0, False)
    assert not set(ids["bob"]) & {item.id for item in page.items}

    repo.failing.clear()
    later = await assembler.assemble(alice, page.state)
    assert page.state.cursors[FeedSource.FOLLOWING].offset > 0
    assert set(ids["bob"]) <= {item.id for item in later.items}


@pytest.mark.asyncio
async def test_empty_cursor_sources_fall_back_to_global(store):
    alice = store.add_user("alice")["id"]
    carol = store.add_user("carol")["id"]
    post = store.add_post(carol, "only one")
    assembler = FeedAssembler(_FlakyRepo(store, {"global"}), page_size=5, floor=5, buffer=5)

    page = await assembler.assemble(alice)

    assert page.fallback is True
    assert [item.id for item in page.items] == [post["id"]]


@pytest.mark.asyncio
async def test_fallback_failure_is_upstream_unavailable(store):
    alice = store.add_user("alice")["id"]
    assembler = FeedAssembler(_FlakyRepo(store, {"global_always"}), page_size=5, floor=5, buffer=5)

    with pytest.raises(UpstreamUnavailable) as exc:
        await assembler.assemble(alice)

    assert exc.value.reason == "feed_unavailable"


@pytest.mark.asyncio
async def test_session_store_roundtrip_with_ttl(fake_redis):
    sessions = FeedSessionStore(fake_redis, ttl_seconds=120)
    state = FeedPageState(seen={3, 1, 2}, pages_served=2)
    state.cursors[FeedSource.OWN].advance(5, 2)

    await sessions.save(7, "abc", state)
    loaded = await sessions.load(7, "abc")

    assert loaded.seen == {1, 2, 3}
    assert loaded.pages_served == 2
    assert loaded.cursors[FeedSource.OWN].exhausted is True
    assert loaded.cursors[FeedSource.GLOBAL].offset == 0
    assert 0 < await fake_redis.ttl("feed:session:7:abc") <= 120
    assert await sessions.load(8, "abc") is None

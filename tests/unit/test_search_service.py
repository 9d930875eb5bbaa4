import pytest

from inkwell.domain.posts.repo import MemoryPostRepository
from inkwell.domain.search.service import SearchService, clamp_limit
from inkwell.infra.auth import AuthenticatedUser


@pytest.fixture
def seeded(store):
    ann = store.add_user("ann", display_name="Ann Rust")["id"]
    ben = store.add_user("ben", display_name="Ben")["id"]
    posts = {
        "title_hit": store.add_post(ben, "Learning Rust", "notes", tags=["rust"])["id"],
        "content_hit": store.add_post(ben, "Weekend", "I wrote some rust code", tags=["life"])["id"],
        "author_hit": store.add_post(ann, "Gardening", "tomatoes", tags=["garden"])["id"],
        "draft": store.add_post(ben, "Rust draft", "unfinished", is_published=False)["id"],
    }
    return ann, ben, posts


@pytest.mark.asyncio
async def test_combined_search_ranks_title_first(store, seeded):
    _, _, posts = seeded
    service = SearchService(MemoryPostRepository(store))

    results = await service.search_posts(None, search="rust")

    ids = [item.id for item in results]
    assert ids[0] == posts["title_hit"]
    assert set(ids) == {posts["title_hit"], posts["content_hit"], posts["author_hit"]}
    assert posts["draft"] not in ids
    assert all(item.score is not None for item in results)


@pytest.mark.asyncio
async def test_author_search_matches_names_only(store, seeded):
    _, _, posts = seeded
    service = SearchService(MemoryPostRepository(store))

    results = await service.search_posts(None, author="rust")

    assert [item.id for item in results] == [posts["author_hit"]]
    assert results[0].author.username == "ann"


@pytest.mark.asyncio
async def test_tag_filter_without_text_lists_newest_first(store, seeded):
    _, ben, posts = seeded
    store.add_post(ben, "Rust again", tags=["rust"])
    service = SearchService(MemoryPostRepository(store))

    results = await service.search_posts(None, tag="rust")

    assert [item.title for item in results] == ["Rust again", "Learning Rust"]
    assert all(item.score is None for item in results)


@pytest.mark.asyncio
async def test_viewer_sees_own_likes(store, seeded):
    ann, _, posts = seeded
    store.add_like(posts["title_hit"], ann)
    service = SearchService(MemoryPostRepository(store))

    results = await service.search_posts(AuthenticatedUser(id=ann), title="learning")

    assert results[0].is_liked is True
    assert results[0].likes_count == 1


@pytest.mark.asyncio
async def test_pagination(store, seeded):
    _, ben, _ = seeded
    for index in range(4):
        store.add_post(ben, f"filler {index}")
    service = SearchService(MemoryPostRepository(store))

    first = await service.search_posts(None, page=1, limit=3)
    second = await service.search_posts(None, page=2, limit=3)

    assert len(first) == 3
    assert not {item.id for item in first} & {item.id for item in second}


@pytest.mark.parametrize("raw, expected", [(None, 10), (0, 10), (-4, 10), (25, 25), (500, 50)])
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw) == expected

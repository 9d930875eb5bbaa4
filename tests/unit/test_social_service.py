import pytest

from inkwell.domain.errors import NotFound, ValidationFailed
from inkwell.domain.social.repo import MemorySocialRepository
from inkwell.domain.social.schemas import ProfileUpdateRequest
from inkwell.domain.social.service import SocialService
from inkwell.infra.auth import AuthenticatedUser


@pytest.fixture
def service(store):
    return SocialService(MemorySocialRepository(store))


@pytest.mark.asyncio
async def test_follow_updates_counts_and_viewer_flag(service, store):
    ann = store.add_user("ann")["id"]
    ben = store.add_user("ben")["id"]
    store.add_post(ben, "hello")
    store.add_post(ben, "draft", is_published=False)

    await service.follow(AuthenticatedUser(id=ann), ben)
    await service.follow(AuthenticatedUser(id=ann), ben)

    profile = await service.get_profile("ben", AuthenticatedUser(id=ann))
    assert profile.followers_count == 1
    assert profile.posts_count == 1
    assert profile.is_following is True
    assert (await service.get_profile("ben", None)).is_following is None
    assert [u.username for u in await service.list_followers("ben", page=1, limit=10)] == ["ann"]
    assert [u.username for u in await service.list_following("ann", page=1, limit=10)] == ["ben"]

    await service.unfollow(AuthenticatedUser(id=ann), ben)
    assert (await service.get_profile("ben", AuthenticatedUser(id=ann))).followers_count == 0


@pytest.mark.asyncio
async def test_follow_rejects_self_and_unknown(service, store):
    ann = store.add_user("ann")["id"]

    with pytest.raises(ValidationFailed):
        await service.follow(AuthenticatedUser(id=ann), ann)
    with pytest.raises(NotFound):
        await service.follow(AuthenticatedUser(id=ann), 404)


@pytest.mark.asyncio
async def test_unknown_profile(service):
    with pytest.raises(NotFound) as exc:
        await service.get_profile("ghost", None)
    assert exc.value.reason == "user_not_found"


@pytest.mark.asyncio
async def test_update_profile_keeps_unset_fields(service, store):
    ann = store.add_user("ann", display_name="Ann", bio="hi")["id"]

    profile = await service.update_profile(
        AuthenticatedUser(id=ann), ProfileUpdateRequest(theme_preference="dark")
    )

    assert (profile.display_name, profile.bio, profile.theme_preference) == ("Ann", "hi", "dark")


@pytest.mark.asyncio
async def test_search_users_matches_username_or_display_name(service, store):
    store.add_user("ann", display_name="Ann Lee")
    store.add_user("lee_b", display_name="Bo")
    store.add_user("zed", display_name="Zed")

    results = await service.search_users("lee", page=1, limit=10)

    assert {u.username for u in results} == {"ann", "lee_b"}
    assert await service.search_users("   ", page=1, limit=10) == []

import pytest


def _headers(user_id):
    return {"X-User-Id": str(user_id)}


@pytest.mark.asyncio
async def test_post_lifecycle(api_client, store):
    ann = store.add_user("ann")["id"]
    ben = store.add_user("ben")["id"]

    created = await api_client.post(
        "/posts",
        json={"title": "Hello", "content": "World", "tags": ["intro"]},
        headers=_headers(ann),
    )
    assert created.status_code == 201
    post_id = created.json()["id"]

    liked = await api_client.post(f"/posts/{post_id}/like", headers=_headers(ben))
    assert liked.json() == {"post_id": post_id, "liked": True, "likes_count": 1}

    comment = await api_client.post(f"/posts/{post_id}/comments", json={"content": "nice"}, headers=_headers(ben))
    assert comment.status_code == 201

    fetched = (await api_client.get(f"/posts/{post_id}", headers=_headers(ben))).json()
    assert fetched["is_liked"] is True
    assert fetched["comments_count"] == 1
    assert fetched["author"]["username"] == "ann"

    forbidden = await api_client.put(f"/posts/{post_id}", json={"title": "x"}, headers=_headers(ben))
    assert forbidden.status_code == 403

    deleted = await api_client.delete(f"/posts/{post_id}", headers=_headers(ann))
    assert deleted.status_code == 204
    assert (await api_client.get(f"/posts/{post_id}")).status_code == 404


@pytest.mark.asyncio
async def test_search_endpoint_prefers_title_intent(api_client, store):
    ann = store.add_user("ann", display_name="Python Ann")["id"]
    store.add_post(ann, "Python tips", "content")
    store.add_post(ann, "Gardening", "no match here")

    by_title = (await api_client.get("/posts", params={"title": "python", "search": "gardening"})).json()
    by_author = (await api_client.get("/posts", params={"author": "python"})).json()

    assert [p["title"] for p in by_title] == ["Python tips"]
    assert {p["title"] for p in by_author} == {"Python tips", "Gardening"}


@pytest.mark.asyncio
async def test_search_limit_is_capped(api_client, store):
    ann = store.add_user("ann")["id"]
    for index in range(55):
        store.add_post(ann, f"post {index}")

    response = await api_client.get("/posts", params={"limit": 500})

    assert response.status_code == 200
    assert len(response.json()) == 50


@pytest.mark.asyncio
async def test_feed_pages_through_a_session(api_client, store):
    ann = store.add_user("ann")["id"]
    ben = store.add_user("ben")["id"]
    store.add_follow(ann, ben)
    store.add_post(ann, "mine")
    for index in range(12):
        store.add_post(ben, f"ben {index}")

    first = await api_client.get("/posts/feed", headers=_headers(ann))
    assert first.status_code == 200
    body = first.json()
    assert body["page"] == 1
    assert body["posts"][0]["title"] == "mine"
    session_id = body["session_id"]

    seen = [p["id"] for p in body["posts"]]
    while body["has_more"]:
        body = (await api_client.get("/posts/feed", params={"session_id": session_id}, headers=_headers(ann))).json()
        assert body["session_id"] == session_id
        seen.extend(p["id"] for p in body["posts"])

    assert len(seen) == len(set(seen)) == 13


@pytest.mark.asyncio
async def test_feed_unknown_session_starts_over(api_client, store):
    ann = store.add_user("ann")["id"]
    store.add_post(ann, "mine")

    response = await api_client.get("/posts/feed", params={"session_id": "stale"}, headers=_headers(ann))

    body = response.json()
    assert body["session_id"] != "stale"
    assert body["page"] == 1


@pytest.mark.asyncio
async def test_feed_requires_authentication(api_client):
    assert (await api_client.get("/posts/feed")).status_code == 401


@pytest.mark.asyncio
async def test_drafts_and_popular_tags(api_client, store):
    ann = store.add_user("ann")["id"]
    store.add_post(ann, "draft", tags=["wip"], is_published=False)
    store.add_post(ann, "live", tags=["py"])

    drafts = (await api_client.get("/posts/drafts", headers=_headers(ann))).json()
    tags = (await api_client.get("/posts/tags/popular")).json()

    assert [p["title"] for p in drafts] == ["draft"]
    assert tags == [{"tag": "py", "count": 1}]


@pytest.mark.asyncio
async def test_validation_error_envelope(api_client, store):
    ann = store.add_user("ann")["id"]

    response = await api_client.post("/posts", json={"content": "no title"}, headers=_headers(ann))

    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"

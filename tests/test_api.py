"""HTTP API tests through httpx ASGITransport."""

from httpx import AsyncClient

from shortlink.core.setting import settings


async def create(client: AsyncClient, url: str = "https://www.python.org", **fields) -> dict:
    response = await client.post("/api/urls", json={"url": url, **fields})
    assert response.status_code == 201, response.text
    return response.json()


async def test_root_and_health(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["environment"] == settings.ENV_SETTING.value
    assert response.json()["docs"] == ("/docs" if settings.docs_enabled else None)

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["checks"] == {"durable_store": True, "cache": True}


async def test_create_short_url(client: AsyncClient):
    data = await create(client, tags=["docs"])

    assert data["original_url"] == "https://www.python.org"
    assert data["short_url"] == f"{settings.BASE_URL}/{data['short_code']}"
    assert data["custom_alias"] is False
    assert data["tags"] == ["docs"]


async def test_create_errors(client: AsyncClient):
    response = await client.post("/api/urls", json={"url": "ftp://example.com"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "InvalidURL"

    response = await client.post("/api/urls", json={"url": "https://a.com", "custom_alias": "x"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "AliasInvalid"

    await create(client, custom_alias="taken")
    response = await client.post("/api/urls", json={"url": "https://b.com", "custom_alias": "taken"})
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "AliasTaken"


async def test_redirect_and_stats(client: AsyncClient, container):
    data = await create(client, custom_alias="pydoc")

    response = await client.get("/pydoc", headers={"User-Agent": "pytest", "Referer": "https://t.co/x"})
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.python.org"
    assert "X-Process-Time" in response.headers

    await client.get("/pydoc")
    await container.dispatcher.join()

    stats = await client.get(f"/api/urls/{data['short_code']}/stats")
    assert stats.status_code == 200
    assert stats.json()["clicks"] == 2
    assert stats.json()["is_custom_alias"] is True

    analytics = await client.get("/api/urls/pydoc/analytics", params={"days": 3})
    assert analytics.status_code == 200
    body = analytics.json()
    assert body["total_clicks"] == 2
    assert len(body["clicks_by_date"]) == 3
    assert body["top_referrers"] == [{"name": "t.co", "count": 1}]


async def test_redirect_errors(client: AsyncClient):
    response = await client.get("/missing", follow_redirects=False)
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "NotFound"

    assert (await client.get("/api/urls/missing/stats")).status_code == 404
    assert (await client.get("/api/urls/missing/analytics")).status_code == 404


async def test_analytics_window_validation(client: AsyncClient):
    await create(client, custom_alias="win")
    assert (await client.get("/api/urls/win/analytics", params={"days": 0})).status_code == 422
    assert (await client.get("/api/urls/win/analytics", params={"days": 366})).status_code == 422


async def test_batch(client: AsyncClient):
    response = await client.post("/api/urls/batch", json={"urls": [
        {"url": "https://one.example.com"},
        {"url": "nope"},
    ]})
    assert response.status_code == 201
    body = response.json()
    assert body["created"] == 1
    assert body["failed"] == 1
    assert body["errors"][0]["index"] == 1
    assert body["errors"][0]["kind"] == "InvalidURL"

    response = await client.post("/api/urls/batch", json={"urls": [{"url": "https://x.com"}] * 51})
    assert response.status_code == 400

    response = await client.post("/api/urls/batch", json={"urls": []})
    assert response.status_code == 400


async def test_list_update_delete(client: AsyncClient):
    first = await create(client, url="https://first.example.com", tags=["keep"])
    second = await create(client, url="https://second.example.com")

    response = await client.put(f"/api/urls/{second['short_code']}", json={"tags": ["new"]})
    assert response.status_code == 200
    assert response.json()["tags"] == ["new"]

    response = await client.delete(f"/api/urls/{second['short_code']}")
    assert response.status_code == 200
    assert (await client.delete(f"/api/urls/{second['short_code']}")).status_code == 404
    assert (await client.get(f"/{second['short_code']}")).status_code == 404

    listing = await client.get("/api/urls", params={"sort_by": "code", "order": "asc"})
    assert listing.status_code == 200
    body = listing.json()
    assert [item["short_code"] for item in body["items"]] == [first["short_code"]]
    assert body["pagination"]["total"] == 1
    assert body["overview"]["total_links"] == 1

    tagged = await client.get("/api/urls", params={"tag": "missing"})
    assert tagged.json()["items"] == []

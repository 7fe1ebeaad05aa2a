"""Tests for the HTTP endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from animuse.core.contracts import FetchResult
from animuse.services import build_services, close_services, set_services
from animuse.storage.kv import MemoryStorage

from conftest import FakeFetcher, make_record

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


def _catalog():
    return [
        make_record("Spirited Away", rating=8.6, year=2001, genres=["Fantasy"], mood_match_score=8.0),
        make_record("Nausicaa", rating=7.9, year=1984, genres=["Adventure"]),
        make_record("Spirited Away", rating=8.6, year=2001),
    ]


@pytest.fixture
async def storage_backend():
    storage = MemoryStorage()
    set_services(build_services(storage=storage, fetcher=FakeFetcher(FetchResult(records=_catalog()))))

    yield storage

    await close_services()


@pytest.fixture
async def client(storage_backend):
    from animuse.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.mark.anyio
async def test_health_endpoint(client):
    """Test that health endpoint returns ok status."""
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["pool"]["mode"] == "thread"


@pytest.mark.anyio
async def test_list_studios(client):
    response = await client.get("/studios")

    assert response.status_code == 200
    ids = [s["id"] for s in response.json()["studios"]]
    assert ids == ["ghibli", "madhouse", "mappa", "bones", "kyoto-animation"]


@pytest.mark.anyio
async def test_studio_view(client):
    response = await client.get("/studios/ghibli")

    assert response.status_code == 200
    body = response.json()
    assert body["sourceId"] == "ghibli"
    assert body["status"] == "succeeded"
    assert body["isStale"] is False

    buckets = {b["name"]: [m["title"] for m in b["members"]] for b in body["data"]}
    assert buckets["high_rated"] == ["Spirited Away"]
    assert buckets["classics"] == ["Nausicaa"]


@pytest.mark.anyio
async def test_unknown_studio_is_404(client):
    response = await client.get("/studios/toei")

    assert response.status_code == 404


@pytest.mark.anyio
async def test_filter_endpoint(client):
    response = await client.post(
        "/studios/ghibli/filter",
        json={"min_rating": 8.0, "genres": ["Fantasy"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "succeeded"
    assert [r["title"] for r in body["data"]] == ["Spirited Away"]


@pytest.mark.anyio
async def test_filter_rejects_out_of_scale_rating(client):
    response = await client.post("/studios/ghibli/filter", json={"min_rating": 11})

    assert response.status_code == 422


@pytest.mark.anyio
async def test_refresh_requires_admin_token(client):
    assert (await client.post("/studios/ghibli/refresh")).status_code == 401

    response = await client.post(
        "/studios/ghibli/refresh",
        headers={"Authorization": "Bearer wrong"},
    )
    assert response.status_code == 403


@pytest.mark.anyio
async def test_refresh_studio(client):
    response = await client.post("/studios/ghibli/refresh", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"


@pytest.mark.anyio
async def test_invalidate_cache(client, storage_backend):
    await client.get("/studios/ghibli")
    assert storage_backend.keys() == ["animuse:studio_ghibli_anime_cache"]

    response = await client.delete("/studios/ghibli/cache", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert storage_backend.keys() == []


@pytest.mark.anyio
async def test_admin_refresh_all(client):
    response = await client.post("/admin/refresh", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert len(response.json()["refreshed"]) == 5

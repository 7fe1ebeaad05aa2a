"""Tests for the expiring cache store and its storage engines."""

import json
import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from animuse.storage.cache_store import CacheStore
from animuse.storage.db import close_engine, get_session_factory, init_models
from animuse.storage.kv import SqlStorage

from conftest import HOUR_MILLIS, make_record

TEST_DB_PATH = "./test_animuse_cache.db"


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{TEST_DB_PATH}", echo=False)
    await init_models(engine)

    yield engine

    await engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture
def sql_storage(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return SqlStorage(session_factory)


class FailingStorage:
    """Storage whose writes always fail, like a full disk."""

    async def get_item(self, key):
        return None

    async def set_item(self, key, value):
        raise OSError("quota exceeded")

    async def remove_item(self, key):
        return None


@pytest.mark.anyio
async def test_write_then_read_round_trip(cache):
    """Entries read before expiry return the written records."""
    records = [
        make_record("Spirited Away", rating=8.6, year=2001, genres=["Fantasy"]),
        make_record("Mononoke", rating=8.4, mood_match_score=7.5),
    ]

    assert await cache.write("ghibli", records) is True
    entry = await cache.read("ghibli")

    assert entry is not None
    assert entry.payload == records
    assert entry.schema_version == "1"


@pytest.mark.anyio
async def test_read_expired_entry_is_miss_and_deleted(cache, storage, clock):
    """An entry one millisecond past the TTL is removed on read."""
    await cache.write("ghibli", [make_record("Totoro")])

    clock.now += 24 * HOUR_MILLIS + 1
    assert await cache.read("ghibli") is None
    assert storage.keys() == []


@pytest.mark.anyio
async def test_read_allow_expired_keeps_entry(cache, storage, clock):
    """Stale fallback reads return an expired entry without deleting it."""
    await cache.write("ghibli", [make_record("Totoro")])
    clock.advance_hours(25)

    entry = await cache.read("ghibli", allow_expired=True)

    assert entry is not None
    assert not cache.is_fresh(entry)
    assert entry.payload[0].title == "Totoro"
    assert storage.keys() == ["animuse:ghibli"]


@pytest.mark.anyio
async def test_corrupt_entry_is_miss_and_deleted(cache, storage):
    """Unparseable entries behave as a miss and are removed."""
    await storage.set_item("animuse:ghibli", "{not json")

    assert await cache.read("ghibli") is None
    assert await cache.read("ghibli", allow_expired=True) is None
    assert storage.keys() == []


@pytest.mark.anyio
async def test_schema_version_mismatch_is_miss(storage, clock):
    """Entries written under another schema version are dropped."""
    old = CacheStore(storage, schema_version="1", clock=clock)
    new = CacheStore(storage, schema_version="2", clock=clock)

    await old.write("mappa", [make_record("Chainsaw Man")])

    assert await new.read("mappa") is None
    assert storage.keys() == []


@pytest.mark.anyio
async def test_malformed_payload_is_miss(cache, storage, clock):
    """A record failing validation makes the whole entry corrupt."""
    document = {
        "payload": [{"title": "   "}],
        "fetchedAtMillis": clock.now,
        "schemaVersion": "1",
    }
    await storage.set_item("animuse:bones", json.dumps(document))

    assert await cache.read("bones") is None
    assert storage.keys() == []


@pytest.mark.anyio
@pytest.mark.parametrize("payload", [[None], ["Totoro"], [42], {"title": "Totoro"}, None])
async def test_non_object_payload_is_miss(cache, storage, clock, payload):
    """Payloads that are not a list of objects are dropped instead of raising."""
    document = {"payload": payload, "fetchedAtMillis": clock.now, "schemaVersion": "1"}
    await storage.set_item("animuse:bones", json.dumps(document))

    assert await cache.read("bones", allow_expired=True) is None
    assert storage.keys() == []


@pytest.mark.anyio
async def test_write_failure_is_swallowed(clock):
    """Write failures are logged and reported as False, never raised."""
    cache = CacheStore(FailingStorage(), clock=clock)

    assert await cache.write("ghibli", [make_record("Totoro")]) is False
    assert await cache.read("ghibli") is None


@pytest.mark.anyio
async def test_invalidate_removes_entry(cache, storage):
    await cache.write("madhouse", [make_record("Monster")])
    await cache.invalidate("madhouse")

    assert storage.keys() == []


@pytest.mark.anyio
async def test_namespace_prefixes_keys(storage, clock):
    cache = CacheStore(storage, namespace="tenant", clock=clock)
    await cache.write("ghibli", [make_record("Totoro")])

    assert storage.keys() == ["tenant:ghibli"]


@pytest.mark.anyio
async def test_sql_storage_round_trip(sql_storage, clock):
    """The cache works unchanged over the SQL cache table."""
    cache = CacheStore(sql_storage, clock=clock)
    records = [make_record("Violet Evergarden", rating=8.7, year=2018)]

    await cache.write("kyoto", records)
    entry = await cache.read("kyoto")
    assert entry is not None
    assert entry.payload == records

    # Overwrite is last-write-wins
    await cache.write("kyoto", [make_record("Clannad")])
    entry = await cache.read("kyoto")
    assert [r.title for r in entry.payload] == ["Clannad"]

    await cache.invalidate("kyoto")
    assert await sql_storage.get_item("animuse:kyoto") is None


@pytest.mark.anyio
async def test_configured_engine_backs_sql_storage(clock):
    """The process-wide engine comes from DATABASE_URL and holds the cache table."""
    await init_models()
    try:
        cache = CacheStore(SqlStorage(get_session_factory()), clock=clock)
        await cache.write("bones", [make_record("Noragami", year=2014)])

        entry = await cache.read("bones")
        assert [r.title for r in entry.payload] == ["Noragami"]
    finally:
        await close_engine()
        if os.path.exists("./test_animuse.db"):
            os.remove("./test_animuse.db")

"""Pytest configuration and shared fixtures."""

import os

# Set test environment variables before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_animuse.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["FILTER_POOL_MODE"] = "thread"
os.environ["REFRESH_ENABLED"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ.pop("CONVEX_URL", None)

import pytest

from animuse.core.contracts import FetchResult, RecommendationRecord
from animuse.storage.cache_store import CacheStore
from animuse.storage.kv import MemoryStorage

HOUR_MILLIS = 60 * 60 * 1000


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * HOUR_MILLIS)


class FakeFetcher:
    """Remote fetcher returning queued results and counting calls."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, int]] = []
        self.gate = None

    async def fetch_by_source(self, source_id: str, limit: int) -> FetchResult:
        self.calls.append((source_id, limit))
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def make_record(title: str, **fields) -> RecommendationRecord:
    return RecommendationRecord(title=title, **fields)


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cache(storage, clock):
    return CacheStore(storage, ttl_millis=24 * HOUR_MILLIS, schema_version="1", clock=clock)

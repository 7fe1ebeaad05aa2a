"""Tests for the scheduled studio refresh job."""

from dataclasses import replace

import pytest

from animuse.core.contracts import FetchResult, LoadStatus
from animuse.jobs import run_studio_refresh, setup_studio_refresh_job, shutdown_scheduler
from animuse.jobs.scheduler import STUDIO_REFRESH_JOB_ID, get_scheduler
from animuse.services import build_services, close_services, set_services
from animuse.storage.kv import MemoryStorage

from conftest import FakeFetcher, make_record


@pytest.fixture
async def services():
    def _install(*results):
        services = build_services(storage=MemoryStorage(), fetcher=FakeFetcher(*results))
        set_services(services)
        return services

    yield _install

    await close_services()


@pytest.mark.anyio
async def test_refresh_counts_each_source(services):
    installed = services(FetchResult(records=[make_record("Totoro", rating=8.1)]))

    stats = await run_studio_refresh(["ghibli", "toei"])

    assert stats.refreshed == ["ghibli"]
    assert stats.skipped == ["toei"]
    assert stats.failed == []
    assert stats.duration_seconds >= 0
    assert installed.orchestrator.state("ghibli").status == LoadStatus.SUCCEEDED


@pytest.mark.anyio
async def test_refresh_failure_is_counted_and_keeps_cache(services):
    installed = services(
        FetchResult(records=[make_record("Akira", rating=8.0)]),
        RuntimeError("offline"),
    )
    await installed.orchestrator.load("madhouse")

    stats = await run_studio_refresh(["madhouse"])

    assert stats.failed == ["madhouse"]
    entry = await installed.cache.read("madhouse_anime_cache")
    assert [r.title for r in entry.payload] == ["Akira"]


@pytest.mark.anyio
async def test_refresh_uses_configured_sources(services):
    installed = services(FetchResult(records=[make_record("Haikyu")]))

    stats = await run_studio_refresh()

    assert stats.refreshed == ["ghibli", "madhouse", "mappa", "bones", "kyoto-animation"]
    assert len(installed.orchestrator.fetcher.calls) == 5


def test_refresh_job_disabled_by_config():
    assert setup_studio_refresh_job() is None


def test_refresh_job_scheduled_when_enabled(monkeypatch):
    import animuse.config

    monkeypatch.setattr(animuse.config, "config", replace(animuse.config.config, refresh_enabled=True))
    try:
        assert setup_studio_refresh_job() == STUDIO_REFRESH_JOB_ID
        job = get_scheduler().get_job(STUDIO_REFRESH_JOB_ID)
        assert job is not None
    finally:
        shutdown_scheduler()

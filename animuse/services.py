"""Process-wide wiring of cache, fetcher, orchestrator and worker pool."""

from dataclasses import dataclass

from animuse.config import Config, config
from animuse.core.contracts import FetchResult, RemoteFetcher
from animuse.core.orchestrator import FetchOrchestrator
from animuse.core.studios import list_studios
from animuse.core.worker_pool import WorkerPool
from animuse.logging import get_logger
from animuse.providers.convex_client import ConvexClient, ConvexRemoteFetcher
from animuse.storage.cache_store import CacheStore
from animuse.storage.db import get_session_factory
from animuse.storage.kv import KeyValueStorage, SqlStorage

logger = get_logger(__name__)

_services: "Services | None" = None


class UnconfiguredFetcher:
    """Fetcher used when no remote source is configured."""

    async def fetch_by_source(self, source_id: str, limit: int) -> FetchResult:
        return FetchResult(error="Remote source not configured (CONVEX_URL not set)")


@dataclass
class Services:
    """Long-lived collaborators shared by the API and scheduled jobs."""

    cache: CacheStore
    orchestrator: FetchOrchestrator
    pool: WorkerPool
    client: ConvexClient | None = None

    async def close(self) -> None:
        self.pool.shutdown()
        if self.client is not None:
            await self.client.close()


def build_services(
    cfg: Config = config,
    storage: KeyValueStorage | None = None,
    fetcher: RemoteFetcher | None = None,
) -> Services:
    """Create the service graph from configuration.

    Args:
        cfg: Configuration to build from
        storage: Storage engine override (defaults to the SQL cache table)
        fetcher: Remote fetcher override (defaults to the Convex deployment)

    Returns:
        Services instance; the worker pool is not started yet
    """
    client: ConvexClient | None = None
    if fetcher is None:
        if cfg.convex_url:
            client = ConvexClient(cfg.convex_url, deploy_key=cfg.convex_deploy_key)
            fetcher = ConvexRemoteFetcher(client)
        else:
            logger.warning("CONVEX_URL not set: remote fetches will fail over to cache")
            fetcher = UnconfiguredFetcher()

    cache = CacheStore(
        storage if storage is not None else SqlStorage(get_session_factory()),
        ttl_millis=cfg.cache_ttl_millis,
        schema_version=cfg.cache_schema_version,
        namespace=cfg.cache_key_prefix,
    )
    orchestrator = FetchOrchestrator(
        fetcher,
        cache,
        fetch_limit=cfg.fetch_limit,
        empty_is_error=cfg.fetch_empty_as_error,
        cache_keys={p.source_id: p.cache_key for p in list_studios()},
    )
    pool = WorkerPool(
        max_workers=cfg.filter_workers,
        task_timeout=cfg.filter_task_timeout,
        mode=cfg.filter_pool_mode,
    )
    return Services(cache=cache, orchestrator=orchestrator, pool=pool, client=client)


def get_services() -> Services:
    """Get or create the process-wide services."""
    global _services

    if _services is None:
        _services = build_services()

    return _services


def set_services(services: Services | None) -> None:
    """Replace the process-wide services (startup and tests)."""
    global _services
    _services = services


async def close_services() -> None:
    """Shut down the process-wide services."""
    global _services

    if _services is not None:
        await _services.close()
        _services = None

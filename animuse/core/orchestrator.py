"""Cache-first fetch coordination per catalog source.

Each source key runs a small state machine (idle -> loading ->
succeeded/failed). At most one remote fetch per key is in flight; later
callers for the same key await that fetch instead of starting another.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable

from animuse.core.contracts import (
    LoadStatus,
    RecommendationRecord,
    RemoteFetcher,
    RetryContext,
)
from animuse.core.errors import FetchEmptyError, FetchFailedError, RecsError
from animuse.logging import get_source_logger

if TYPE_CHECKING:
    from animuse.storage.cache_store import CacheStore


DEFAULT_FETCH_LIMIT = 100

OP_LOAD = "load"
OP_REFRESH = "refresh"


def _logger(source_id: str):
    return get_source_logger(__name__, source_id)


@dataclass
class SourceState:
    """Snapshot of one source's data and status."""

    source_id: str
    status: LoadStatus = LoadStatus.IDLE
    records: list[RecommendationRecord] = field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    is_stale: bool = False
    fetched_at_millis: int | None = None
    refreshing: bool = False
    retry: RetryContext | None = None


Listener = Callable[[SourceState], None]


class FetchOrchestrator:
    """Coordinates cache reads, remote fetches and stale fallback."""

    def __init__(
        self,
        fetcher: RemoteFetcher,
        cache: "CacheStore",
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        empty_is_error: bool = True,
        cache_keys: dict[str, str] | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            fetcher: Remote source of records
            cache: Local expiring cache
            fetch_limit: Maximum number of records requested per fetch
            empty_is_error: Treat an empty successful fetch as a failure
            cache_keys: Optional source id -> cache key mapping
        """
        self.fetcher = fetcher
        self.cache = cache
        self.fetch_limit = fetch_limit
        self.empty_is_error = empty_is_error
        self._cache_keys = cache_keys or {}
        self._states: dict[str, SourceState] = {}
        self._inflight: dict[str, asyncio.Task[SourceState]] = {}
        self._listeners: dict[str, list[Listener]] = {}

    def cache_key(self, source_id: str) -> str:
        return self._cache_keys.get(source_id, source_id)

    def state(self, source_id: str) -> SourceState:
        """Current state of a source (a copy)."""
        return replace(self._get_state(source_id))

    def is_fetching(self, source_id: str) -> bool:
        return source_id in self._inflight

    def subscribe(self, source_id: str, listener: Listener) -> Callable[[], None]:
        """Register a state-transition listener.

        Returns:
            Callable that removes the listener
        """
        listeners = self._listeners.setdefault(source_id, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def load(self, source_id: str, force_refresh: bool = False) -> SourceState:
        """Load a source, serving a fresh cache entry without any remote call.

        Args:
            source_id: Catalog partition to load
            force_refresh: Skip the cache and fetch from the remote source

        Returns:
            State after the load (or after the in-flight fetch it joined)
        """
        if not force_refresh:
            entry = await self.cache.read(self.cache_key(source_id), allow_expired=True)
            servable = entry is not None and (entry.payload or not self.empty_is_error)
            if servable and self.cache.is_fresh(entry):
                _logger(source_id).info(f"Loading {len(entry.payload)} records from cache")
                self._transition(
                    source_id,
                    status=LoadStatus.SUCCEEDED,
                    records=entry.payload,
                    error=None,
                    error_kind=None,
                    is_stale=False,
                    fetched_at_millis=entry.fetched_at_millis,
                    retry=None,
                )
                return self.state(source_id)

        operation = OP_REFRESH if force_refresh else OP_LOAD
        return await self._join_or_start(source_id, operation, background=False)

    def refresh_in_background(self, source_id: str) -> "asyncio.Task[SourceState]":
        """Force a fetch without showing a loading state over existing data.

        Returns:
            Task resolving to the state after the refresh
        """
        return asyncio.create_task(self._join_or_start(source_id, OP_REFRESH, background=True))

    async def retry(self, source_id: str) -> SourceState:
        """Re-run the request that last failed for a source."""
        context = self._get_state(source_id).retry
        if context is None:
            return await self.load(source_id)
        _logger(source_id).info(f"Retrying {context.operation}")
        return await self.load(source_id, force_refresh=context.force_refresh)

    async def invalidate(self, source_id: str) -> None:
        await self.cache.invalidate(self.cache_key(source_id))

    async def _join_or_start(self, source_id: str, operation: str, background: bool) -> SourceState:
        task = self._inflight.get(source_id)
        if task is not None:
            _logger(source_id).info("Fetch already in progress, joining it")
            return await asyncio.shield(task)

        task = asyncio.create_task(self._fetch(source_id, operation, background))
        self._inflight[source_id] = task
        task.add_done_callback(lambda _: self._inflight.pop(source_id, None))
        return await asyncio.shield(task)

    async def _fetch(self, source_id: str, operation: str, background: bool) -> SourceState:
        current = self._get_state(source_id)
        keep_visible = background and current.status == LoadStatus.SUCCEEDED
        if keep_visible:
            self._transition(source_id, refreshing=True)
        else:
            self._transition(source_id, status=LoadStatus.LOADING, error=None, error_kind=None)

        retry = RetryContext(source_id, operation, force_refresh=operation == OP_REFRESH)

        try:
            _logger(source_id).info(f"Fetching up to {self.fetch_limit} records")
            result = await self.fetcher.fetch_by_source(source_id, self.fetch_limit)
            if result.error:
                raise FetchFailedError(result.error, source_id=source_id, operation=operation)
        except Exception as e:
            error = e if isinstance(e, RecsError) else FetchFailedError(
                str(e) or type(e).__name__, source_id=source_id, operation=operation
            )
            _logger(source_id).error(f"Fetch failed: {error.message}")
            return await self._recover(source_id, error, retry, keep_visible)

        records = result.records
        if not records and self.empty_is_error:
            error = FetchEmptyError(
                f"No items found for {source_id}", source_id=source_id, operation=operation
            )
            _logger(source_id).warning(error.message)
            if keep_visible:
                self._transition(source_id, refreshing=False, error=error.message, error_kind=error.kind)
            else:
                self._transition(
                    source_id,
                    status=LoadStatus.FAILED,
                    records=[],
                    error=error.message,
                    error_kind=error.kind,
                    is_stale=False,
                    retry=retry,
                )
            return self.state(source_id)

        key = self.cache_key(source_id)
        await self.cache.write(key, records)
        self._transition(
            source_id,
            status=LoadStatus.SUCCEEDED,
            records=records,
            error=None,
            error_kind=None,
            is_stale=False,
            fetched_at_millis=self.cache.now(),
            refreshing=False,
            retry=None,
        )
        _logger(source_id).info(f"Successfully fetched {len(records)} records")
        return self.state(source_id)

    async def _recover(
        self,
        source_id: str,
        error: RecsError,
        retry: RetryContext,
        keep_visible: bool,
    ) -> SourceState:
        if keep_visible:
            self._transition(
                source_id,
                refreshing=False,
                error=f"Refresh failed: {error.message}",
                error_kind=error.kind,
                retry=retry,
            )
            return self.state(source_id)

        entry = await self.cache.read(self.cache_key(source_id), allow_expired=True)
        if entry is not None and entry.payload:
            _logger(source_id).info("Falling back to cached data")
            self._transition(
                source_id,
                status=LoadStatus.SUCCEEDED,
                records=entry.payload,
                error=f"Using cached data - refresh failed: {error.message}",
                error_kind=error.kind,
                is_stale=True,
                fetched_at_millis=entry.fetched_at_millis,
                retry=retry,
            )
        else:
            self._transition(
                source_id,
                status=LoadStatus.FAILED,
                records=[],
                error=error.message,
                error_kind=error.kind,
                is_stale=False,
                retry=retry,
            )
        return self.state(source_id)

    def _get_state(self, source_id: str) -> SourceState:
        state = self._states.get(source_id)
        if state is None:
            state = SourceState(source_id=source_id)
            self._states[source_id] = state
        return state

    def _transition(self, source_id: str, **changes) -> None:
        state = self._get_state(source_id)
        for name, value in changes.items():
            setattr(state, name, value)

        snapshot = replace(state)
        for listener in list(self._listeners.get(source_id, [])):
            try:
                listener(snapshot)
            except Exception:
                _logger(source_id).exception("State listener failed")

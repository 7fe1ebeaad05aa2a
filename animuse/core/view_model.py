"""View-model assembly for studio pages and the smart filter."""

from typing import Iterable

from animuse.core.classifier import classify
from animuse.core.contracts import (
    CategoryBucket,
    FilterSpec,
    LoadStatus,
    RecommendationRecord,
    RetryContext,
    ViewModel,
)
from animuse.core.dedupe import dedupe
from animuse.core.errors import FilterTimeoutError
from animuse.core.filtering import filter_records
from animuse.core.orchestrator import FetchOrchestrator, SourceState
from animuse.core.studios import StudioProfile
from animuse.core.worker_pool import FILTER_TASK, FilterChannel, WorkerPool
from animuse.logging import get_source_logger


class RecommendationViewModel:
    """Feeds orchestrator state through dedupe, classification and filtering.

    Mirrors a mounted page: state transitions arriving after `unmount()` are
    ignored, and only the newest filter request is allowed to replace the
    filtered view.
    """

    def __init__(
        self,
        profile: StudioProfile,
        orchestrator: FetchOrchestrator,
        pool: WorkerPool | None = None,
    ) -> None:
        self.profile = profile
        self.orchestrator = orchestrator
        self._log = get_source_logger(__name__, profile.source_id)
        self._channel = FilterChannel(pool, profile.source_id) if pool is not None else None
        self._unsubscribe = None
        self._mounted = False
        self._state = SourceState(source_id=profile.source_id)
        self._buckets: list[CategoryBucket] = []
        self._filtered: ViewModel | None = None

    @property
    def source_id(self) -> str:
        return self.profile.source_id

    @property
    def mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> ViewModel:
        """Subscribe to the source and load it (cache first)."""
        if not self._mounted:
            self._mounted = True
            self._unsubscribe = self.orchestrator.subscribe(self.source_id, self._on_state)
        state = await self.orchestrator.load(self.source_id)
        self._on_state(state)
        return self.snapshot()

    def unmount(self) -> None:
        """Stop applying results; in-flight fetches still run to completion."""
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def refresh(self) -> ViewModel:
        """Refresh in the background, keeping current data visible."""
        state = await self.orchestrator.refresh_in_background(self.source_id)
        self._on_state(state)
        return self.snapshot()

    async def retry(self) -> ViewModel:
        state = await self.orchestrator.retry(self.source_id)
        self._on_state(state)
        return self.snapshot()

    def snapshot(self) -> ViewModel:
        """Bucketed view of the current records."""
        state = self._state
        return ViewModel(
            source_id=self.source_id,
            status=state.status,
            data=list(self._buckets),
            error=state.error,
            error_kind=state.error_kind,
            is_stale=state.is_stale,
            fetched_at_millis=state.fetched_at_millis,
            retry=state.retry,
        )

    @property
    def records(self) -> list[RecommendationRecord]:
        return dedupe(self._state.records)

    @property
    def filtered(self) -> ViewModel | None:
        """Last applied filtered view, if any."""
        return self._filtered

    async def apply_filter(
        self,
        spec: FilterSpec,
        watched_titles: Iterable[str] = (),
    ) -> ViewModel:
        """Filter the current records off the event loop.

        A response superseded by a newer request leaves the filtered view
        untouched; a timeout fails only this request.

        Returns:
            The filtered view after this request resolved
        """
        records = self.records
        excluded = list(watched_titles)

        if self._channel is None:
            self._log.warning("No worker pool, filtering inline")
            result = filter_records(records, spec, excluded)
            self._filtered = self._filtered_view(LoadStatus.SUCCEEDED, result)
            return self._filtered

        try:
            response = await self._channel.submit(records, spec, excluded)
        except FilterTimeoutError as e:
            self._log.warning(e.message)
            retry = RetryContext(
                e.source_id or self.source_id,
                e.operation or FILTER_TASK,
                force_refresh=False,
            )
            return self._filtered_view(
                LoadStatus.FAILED, [], error=e.message, error_kind=e.kind, retry=retry
            )

        if response.superseded or not self._mounted:
            return self._filtered or self._filtered_view(LoadStatus.LOADING, [])

        self._filtered = self._filtered_view(LoadStatus.SUCCEEDED, response.records)
        return self._filtered

    def _filtered_view(
        self,
        status: LoadStatus,
        data: list[RecommendationRecord],
        error: str | None = None,
        error_kind: str | None = None,
        retry: RetryContext | None = None,
    ) -> ViewModel:
        return ViewModel(
            source_id=self.source_id,
            status=status,
            data=data,
            error=error or self._state.error,
            error_kind=error_kind or self._state.error_kind,
            is_stale=self._state.is_stale,
            fetched_at_millis=self._state.fetched_at_millis,
            retry=retry,
        )

    def _on_state(self, state: SourceState) -> None:
        if not self._mounted:
            return

        # A background refresh never blanks data that is already on screen
        if state.status == LoadStatus.SUCCEEDED:
            self._buckets = list(classify(dedupe(state.records), list(self.profile.rules)).values())
        elif state.status == LoadStatus.FAILED:
            self._buckets = []
        self._state = state

"""Periodic background refresh of studio catalogs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from animuse.config import config
from animuse.core.contracts import LoadStatus
from animuse.core.studios import get_studio
from animuse.logging import get_logger
from animuse.services import get_services

logger = get_logger(__name__)


@dataclass
class RefreshStats:
    """Statistics from a refresh run."""

    started_at: datetime
    finished_at: datetime | None = None
    refreshed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


async def run_studio_refresh(source_ids: list[str] | None = None) -> RefreshStats:
    """Refresh each configured studio catalog, one source at a time.

    A failed refresh keeps whatever data and cache entry the source already
    has; it is only counted and logged.

    Args:
        source_ids: Sources to refresh (defaults to REFRESH_SOURCES)

    Returns:
        RefreshStats with run statistics
    """
    stats = RefreshStats(started_at=datetime.now(timezone.utc))
    orchestrator = get_services().orchestrator

    for source_id in source_ids or config.refresh_sources:
        if get_studio(source_id) is None:
            logger.warning(f"Refresh skipped unknown source: {source_id}")
            stats.skipped.append(source_id)
            continue

        state = await orchestrator.refresh_in_background(source_id)
        if state.status == LoadStatus.SUCCEEDED and state.error is None:
            stats.refreshed.append(source_id)
        else:
            stats.failed.append(source_id)

    stats.finished_at = datetime.now(timezone.utc)
    logger.info(
        f"Studio refresh finished in {stats.duration_seconds:.1f}s: "
        f"refreshed={len(stats.refreshed)}, failed={len(stats.failed)}, "
        f"skipped={len(stats.skipped)}"
    )
    return stats

"""APScheduler configuration and job management."""

from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from animuse.logging import get_logger

logger = get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None

STUDIO_REFRESH_JOB_ID = "studio_refresh"


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler

    if _scheduler is None:
        logger.info("Creating scheduler")
        _scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

    return _scheduler


def start_scheduler() -> None:
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        logger.info("Starting scheduler")
        scheduler.start()


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        logger.info("Shutting down scheduler")
        _scheduler.shutdown(wait=False)
    _scheduler = None


def setup_studio_refresh_job() -> str | None:
    """Setup the periodic studio catalog refresh.

    The first run is delayed by one interval: pages load from cache or fetch
    on demand, so there is nothing to refresh at startup.
    """
    from animuse.config import config

    if not config.refresh_enabled:
        logger.info("Studio refresh job not scheduled: REFRESH_ENABLED=false")
        return None

    if not config.refresh_sources:
        logger.warning("Studio refresh job not scheduled: REFRESH_SOURCES is empty")
        return None

    from animuse.jobs.studio_refresh import run_studio_refresh

    scheduler = get_scheduler()
    interval = timedelta(hours=config.refresh_interval_hours)
    job = scheduler.add_job(
        run_studio_refresh,
        "interval",
        hours=config.refresh_interval_hours,
        id=STUDIO_REFRESH_JOB_ID,
        name="Studio Catalog Refresh",
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc) + interval,
    )
    logger.info(
        f"Scheduled studio refresh job: interval={config.refresh_interval_hours}h, "
        f"sources={','.join(config.refresh_sources)}, job_id={job.id}"
    )
    return job.id


def setup_all_jobs() -> None:
    """Register all periodic jobs."""
    setup_studio_refresh_job()

"""Jobs module for scheduled background refresh."""

from animuse.jobs.scheduler import (
    get_scheduler,
    setup_all_jobs,
    setup_studio_refresh_job,
    shutdown_scheduler,
    start_scheduler,
)
from animuse.jobs.studio_refresh import RefreshStats, run_studio_refresh

__all__ = [
    "get_scheduler",
    "run_studio_refresh",
    "setup_all_jobs",
    "setup_studio_refresh_job",
    "shutdown_scheduler",
    "start_scheduler",
    "RefreshStats",
]

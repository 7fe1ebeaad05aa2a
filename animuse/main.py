"""Application entrypoint exposing studio view models over HTTP."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from animuse.config import config
from animuse.core.contracts import FilterSpec
from animuse.core.studios import StudioProfile, get_studio, list_studios
from animuse.core.view_model import RecommendationViewModel
from animuse.jobs import setup_all_jobs, shutdown_scheduler, start_scheduler
from animuse.logging import get_logger, setup_logging
from animuse.services import close_services, get_services
from animuse.storage.db import close_engine, init_models

setup_logging(config.log_level)
logger = get_logger(__name__)


async def verify_admin_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify admin token for protected endpoints.

    Args:
        authorization: Authorization header value

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not config.admin_token:
        raise HTTPException(
            status_code=503,
            detail="Admin endpoints not configured (ADMIN_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != config.admin_token:
        raise HTTPException(status_code=403, detail="Invalid admin token")


def _require_studio(source_id: str) -> StudioProfile:
    profile = get_studio(source_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown studio: {source_id}")
    return profile


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")

    await init_models()
    logger.info("Cache tables ensured")

    services = get_services()
    services.pool.start()

    start_scheduler()
    setup_all_jobs()

    yield

    logger.info("Shutting down application")
    shutdown_scheduler()
    await close_services()
    await close_engine()


app = FastAPI(
    title="Animuse Recommendations",
    version="0.1.0",
    lifespan=lifespan,
)


class FilterRequest(BaseModel):
    """Body of a filter request."""

    min_rating: float = Field(0.0, ge=0.0, le=10.0)
    genres: list[str] = Field(default_factory=list)
    year_min: int | None = None
    year_max: int | None = None
    studios: list[str] = Field(default_factory=list)
    exclude_watched: bool = False
    prioritize_new_releases: bool = False
    mood_match_threshold: float = Field(0.0, ge=0.0, le=10.0)
    missing_year: int | None = None
    watched_titles: list[str] = Field(default_factory=list)

    def to_spec(self) -> FilterSpec:
        return FilterSpec(
            min_rating=self.min_rating,
            genres=frozenset(self.genres),
            year_range=(self.year_min, self.year_max),
            studios=frozenset(self.studios),
            exclude_watched=self.exclude_watched,
            prioritize_new_releases=self.prioritize_new_releases,
            mood_match_threshold=self.mood_match_threshold,
            missing_year=self.missing_year,
        )


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    pool = get_services().pool
    return {
        "ok": True,
        "pool": {
            "mode": pool.mode,
            "ready": pool.is_ready,
            "active": pool.active_workers,
            "queued": pool.queue_length,
        },
    }


@app.get("/studios")
async def get_studios() -> dict:
    """List studio catalogs and their buckets."""
    return {
        "ok": True,
        "studios": [
            {"id": p.source_id, "name": p.name, "buckets": p.bucket_names}
            for p in list_studios()
        ],
    }


@app.get("/studios/{source_id}")
async def get_studio_view(source_id: str) -> dict:
    """Return the bucketed view model for a studio (cache first)."""
    profile = _require_studio(source_id)
    services = get_services()

    view_model = RecommendationViewModel(profile, services.orchestrator, services.pool)
    try:
        view = await view_model.mount()
    finally:
        view_model.unmount()

    return view.to_dict()


@app.post("/studios/{source_id}/filter")
async def filter_studio(source_id: str, request: FilterRequest) -> dict:
    """Filter a studio's records with the worker pool."""
    profile = _require_studio(source_id)
    services = get_services()

    view_model = RecommendationViewModel(profile, services.orchestrator, services.pool)
    try:
        await view_model.mount()
        view = await view_model.apply_filter(request.to_spec(), request.watched_titles)
    finally:
        view_model.unmount()

    return view.to_dict()


@app.post("/studios/{source_id}/refresh")
async def refresh_studio(
    source_id: str,
    _: None = Depends(verify_admin_token),
) -> dict:
    """Force a refresh of a studio catalog, keeping current data on failure.

    Requires admin token in Authorization header.
    """
    profile = _require_studio(source_id)
    services = get_services()

    logger.info(f"Admin triggered refresh for {profile.source_id}")

    view_model = RecommendationViewModel(profile, services.orchestrator, services.pool)
    try:
        await view_model.mount()
        view = await view_model.refresh()
    finally:
        view_model.unmount()

    return view.to_dict()


@app.delete("/studios/{source_id}/cache")
async def invalidate_studio_cache(
    source_id: str,
    _: None = Depends(verify_admin_token),
) -> dict:
    """Drop the cached catalog for a studio.

    Requires admin token in Authorization header.
    """
    profile = _require_studio(source_id)
    await get_services().orchestrator.invalidate(profile.source_id)
    logger.info(f"Admin invalidated cache for {profile.source_id}")
    return {"ok": True}


@app.post("/admin/refresh")
async def trigger_refresh(
    _: None = Depends(verify_admin_token),
) -> dict:
    """Run the scheduled studio refresh immediately.

    Requires admin token in Authorization header.
    """
    from animuse.jobs import run_studio_refresh

    logger.info("Admin triggered studio refresh")
    stats = await run_studio_refresh()
    return {
        "ok": True,
        "refreshed": stats.refreshed,
        "failed": stats.failed,
        "skipped": stats.skipped,
        "duration_seconds": stats.duration_seconds,
    }


def main() -> None:
    """Main entrypoint."""
    logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
    uvicorn.run(
        "animuse.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()

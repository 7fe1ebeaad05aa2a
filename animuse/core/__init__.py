"""Core module: recommendation cache, classification and filtering."""

from animuse.core.classifier import (
    OrderedRule,
    any_of,
    by_rating,
    by_year,
    catch_all,
    classify,
    genres_any,
    rating_at_least,
    title_contains_any,
    year_at_least,
    year_at_most,
)
from animuse.core.contracts import (
    CacheEntry,
    CategoryBucket,
    FetchResult,
    FilterSpec,
    LoadStatus,
    RecommendationRecord,
    RemoteFetcher,
    RetryContext,
    ViewModel,
)
from animuse.core.dedupe import dedupe, normalize_title
from animuse.core.errors import (
    CacheCorruptError,
    FetchEmptyError,
    FetchFailedError,
    FilterTimeoutError,
    RecsError,
    StorageWriteError,
    UnknownTaskError,
)
from animuse.core.filtering import filter_records
from animuse.core.orchestrator import FetchOrchestrator, SourceState
from animuse.core.studios import StudioProfile, get_studio, list_studios
from animuse.core.view_model import RecommendationViewModel
from animuse.core.worker_pool import FilterChannel, FilterResponse, WorkerPool, register_task

__all__ = [
    # Contracts/Types
    "CacheEntry",
    "CategoryBucket",
    "FetchResult",
    "FilterSpec",
    "LoadStatus",
    "RecommendationRecord",
    "RemoteFetcher",
    "RetryContext",
    "ViewModel",
    # Errors
    "CacheCorruptError",
    "FetchEmptyError",
    "FetchFailedError",
    "FilterTimeoutError",
    "RecsError",
    "StorageWriteError",
    "UnknownTaskError",
    # Classification
    "OrderedRule",
    "classify",
    "by_rating",
    "by_year",
    "rating_at_least",
    "year_at_least",
    "year_at_most",
    "genres_any",
    "title_contains_any",
    "any_of",
    "catch_all",
    # Studios
    "StudioProfile",
    "get_studio",
    "list_studios",
    # Filtering
    "filter_records",
    "FilterChannel",
    "FilterResponse",
    "WorkerPool",
    "register_task",
    # Dedupe
    "dedupe",
    "normalize_title",
    # Orchestration
    "FetchOrchestrator",
    "SourceState",
    "RecommendationViewModel",
]

"""Filter and ordering pipeline for recommendation lists.

Pure functions only: the pipeline runs inside worker processes, so it must
not touch configuration, storage or the event loop.
"""

from typing import Any, Iterable

from animuse.core.contracts import FilterSpec, RecommendationRecord
from animuse.core.dedupe import normalize_title


def _by_rating_floor(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    if spec.min_rating <= 0:
        return records
    return [r for r in records if (r.rating or 0.0) >= spec.min_rating]


def _by_genres(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    if not spec.genres:
        return records
    return [r for r in records if any(g in spec.genres for g in r.genres)]


def _by_year_range(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    low, high = spec.year_range
    if low is None and high is None:
        return records

    kept = []
    for record in records:
        year = record.year if record.year is not None else spec.missing_year
        if year is None:
            kept.append(record)
            continue
        if low is not None and year < low:
            continue
        if high is not None and year > high:
            continue
        kept.append(record)
    return kept


def _by_studios(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    if not spec.studios:
        return records
    return [r for r in records if any(s in spec.studios for s in r.studios)]


def _by_watched(
    records: list[RecommendationRecord],
    spec: FilterSpec,
    excluded: set[str],
) -> list[RecommendationRecord]:
    if not spec.exclude_watched or not excluded:
        return records
    return [r for r in records if normalize_title(r.title) not in excluded]


def _by_mood(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    if spec.mood_match_threshold <= 0:
        return records
    return [r for r in records if (r.mood_match_score or 0.0) >= spec.mood_match_threshold]


def _order(records: list[RecommendationRecord], spec: FilterSpec) -> list[RecommendationRecord]:
    if spec.prioritize_new_releases:
        return sorted(records, key=lambda r: r.year or 0, reverse=True)
    return sorted(records, key=lambda r: r.mood_match_score or 0.0, reverse=True)


def filter_records(
    records: Iterable[RecommendationRecord],
    spec: FilterSpec,
    excluded_titles: Iterable[str] = (),
) -> list[RecommendationRecord]:
    """Apply the filter stages in fixed order, then the final stable sort.

    Args:
        records: Candidate records
        spec: Filter configuration; default fields impose no constraint
        excluded_titles: Watched titles, compared after normalization

    Returns:
        Filtered and ordered records
    """
    excluded = {normalize_title(t) for t in excluded_titles}

    result = list(records)
    result = _by_rating_floor(result, spec)
    result = _by_genres(result, spec)
    result = _by_year_range(result, spec)
    result = _by_studios(result, spec)
    result = _by_watched(result, spec, excluded)
    result = _by_mood(result, spec)
    return _order(result, spec)


def run_filter_task(payload: dict[str, Any]) -> list[RecommendationRecord]:
    """Worker entry point for the "filter" task type."""
    return filter_records(
        payload["records"],
        payload["spec"],
        payload.get("excluded_titles", ()),
    )

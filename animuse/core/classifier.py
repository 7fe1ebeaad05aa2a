"""Rule-based bucketing of records into display categories.

Rules are evaluated in declaration order and the first matching rule claims
the record, so overlapping predicates never put one title in two buckets.
"""

from dataclasses import dataclass
from typing import Callable, Iterable

from animuse.core.contracts import CategoryBucket, RecommendationRecord
from animuse.logging import get_logger

logger = get_logger(__name__)

Predicate = Callable[[RecommendationRecord], bool]
SortKey = Callable[[RecommendationRecord], float]


def by_rating(record: RecommendationRecord) -> float:
    """Sort key: rating, missing rating counts as 0."""
    return record.rating or 0.0


def by_year(record: RecommendationRecord) -> float:
    """Sort key: release year, missing year counts as 0."""
    return float(record.year or 0)


@dataclass(frozen=True)
class OrderedRule:
    """One classification rule.

    Members of the bucket are sorted descending by `sort_key` and truncated
    to `cap`. Several rules may share a bucket name; the first rule that
    declares a name sets that bucket's cap and sort key.
    """

    name: str
    predicate: Predicate
    cap: int = 12
    sort_key: SortKey = by_rating


def classify(
    records: Iterable[RecommendationRecord],
    rules: list[OrderedRule],
) -> dict[str, CategoryBucket]:
    """Partition records into buckets using first-match rule evaluation.

    Args:
        records: Records to classify
        rules: Ordered rules; put narrow rules first and a catch-all last

    Returns:
        Buckets keyed by name, in the order their names were first declared
    """
    settings: dict[str, OrderedRule] = {}
    members: dict[str, list[RecommendationRecord]] = {}
    for rule in rules:
        if rule.name not in settings:
            settings[rule.name] = rule
            members[rule.name] = []

    unmatched = 0
    for record in records:
        for rule in rules:
            if rule.predicate(record):
                members[rule.name].append(record)
                break
        else:
            unmatched += 1

    if unmatched:
        logger.debug(f"{unmatched} records matched no rule and were dropped")

    buckets: dict[str, CategoryBucket] = {}
    for name, rule in settings.items():
        # sorted() is stable with reverse=True, ties keep input order
        ordered = sorted(members[name], key=rule.sort_key, reverse=True)
        buckets[name] = CategoryBucket(name=name, members=ordered[: rule.cap], cap=rule.cap)

    return buckets


# ------------------------------------------------------------------
# Predicate helpers
# ------------------------------------------------------------------

def rating_at_least(threshold: float) -> Predicate:
    return lambda r: r.rating is not None and r.rating >= threshold


def year_at_least(year: int) -> Predicate:
    return lambda r: r.year is not None and r.year >= year


def year_at_most(year: int) -> Predicate:
    return lambda r: r.year is not None and r.year <= year


def genres_any(*genres: str) -> Predicate:
    """Match records having at least one of the genres (case-insensitive)."""
    wanted = {g.lower() for g in genres}
    return lambda r: any(g.lower() in wanted for g in r.genres)


def title_contains_any(*fragments: str) -> Predicate:
    """Match records whose lowercased title contains any fragment."""
    needles = tuple(f.lower() for f in fragments)
    return lambda r: any(n in r.title.lower() for n in needles)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda r: any(p(r) for p in predicates)


def catch_all(record: RecommendationRecord) -> bool:
    return True

"""Title-based de-duplication of records before display."""

from typing import Iterable

from animuse.core.contracts import RecommendationRecord
from animuse.logging import get_logger

logger = get_logger(__name__)


def normalize_title(title: str | None) -> str:
    """Identity key for a title: trimmed and lowercased."""
    if not title:
        return ""
    return title.strip().lower()


def dedupe(records: Iterable[RecommendationRecord]) -> list[RecommendationRecord]:
    """Remove records whose normalized title was already seen.

    The first occurrence wins and encounter order is preserved.

    Args:
        records: Records, possibly merged from overlapping catalog sources

    Returns:
        New list without duplicate titles
    """
    seen: set[str] = set()
    result: list[RecommendationRecord] = []
    dropped = 0

    for record in records:
        key = normalize_title(record.title)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        result.append(record)

    if dropped:
        logger.debug(f"Dropped {dropped} duplicate records")

    return result

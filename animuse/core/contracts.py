"""Domain contracts and type definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class LoadStatus(str, Enum):
    """Lifecycle of a source's data as seen by the rendering layer."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_score(value: Any, name: str) -> float | None:
    """Parse an optional 0-10 score, rejecting other scales."""
    if value is None or value == "":
        return None
    score = float(value)
    if not 0.0 <= score <= 10.0:
        raise ValueError(f"{name} must be on a 0-10 scale, got {score}")
    return score


@dataclass
class RecommendationRecord:
    """A single anime recommendation flowing through the pipeline."""

    title: str
    description: str = ""
    id: str | None = None
    poster_url: str | None = None
    genres: list[str] = field(default_factory=list)
    year: int | None = None
    rating: float | None = None
    studios: list[str] = field(default_factory=list)
    themes: list[str] = field(default_factory=list)
    emotional_tags: list[str] = field(default_factory=list)
    mood_match_score: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecommendationRecord":
        """Create from the camelCase payload returned by the remote source.

        Raises:
            ValueError: If the title is blank or a score is off the 0-10 scale
        """
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValueError("Recommendation record requires a non-empty title")

        record_id = data.get("_id", data.get("id"))

        return cls(
            title=title,
            description=str(data.get("description") or ""),
            id=str(record_id) if record_id else None,
            poster_url=data.get("posterUrl") or None,
            genres=_str_list(data.get("genres")),
            year=_optional_int(data.get("year")),
            rating=_optional_score(data.get("rating"), "rating"),
            studios=_str_list(data.get("studios")),
            themes=_str_list(data.get("themes")),
            emotional_tags=_str_list(data.get("emotionalTags")),
            mood_match_score=_optional_score(data.get("moodMatchScore"), "moodMatchScore"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase payload shape."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "posterUrl": self.poster_url,
            "genres": list(self.genres),
            "year": self.year,
            "rating": self.rating,
            "studios": list(self.studios),
            "themes": list(self.themes),
            "emotionalTags": list(self.emotional_tags),
            "moodMatchScore": self.mood_match_score,
        }
        if self.id is not None:
            data["_id"] = self.id
        return data


@dataclass
class CacheEntry:
    """Persisted wrapper around a fetched record list."""

    payload: list[RecommendationRecord]
    fetched_at_millis: int
    schema_version: str

    def age_millis(self, now_millis: int) -> int:
        return now_millis - self.fetched_at_millis


@dataclass
class CategoryBucket:
    """Named, sorted, capped subset of records for one display section."""

    name: str
    members: list[RecommendationRecord]
    cap: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "cap": self.cap,
            "members": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class FilterSpec:
    """User-configurable filter and ordering options.

    Every default value imposes no constraint. `year_range` bounds are
    inclusive and `None` leaves that side open. `missing_year` is the year
    substituted for undated records in the range check; `None` lets undated
    records pass.
    """

    min_rating: float = 0.0
    genres: frozenset[str] = frozenset()
    year_range: tuple[int | None, int | None] = (None, None)
    studios: frozenset[str] = frozenset()
    exclude_watched: bool = False
    prioritize_new_releases: bool = False
    mood_match_threshold: float = 0.0
    missing_year: int | None = None


@dataclass
class FetchResult:
    """Response of a remote fetch."""

    records: list[RecommendationRecord] = field(default_factory=list)
    error: str | None = None


class RemoteFetcher(Protocol):
    """Opaque remote source of recommendation records."""

    async def fetch_by_source(self, source_id: str, limit: int) -> FetchResult:
        """Fetch up to `limit` records for a catalog partition."""
        ...


@dataclass(frozen=True)
class RetryContext:
    """What to re-run when the user asks to retry a failed request."""

    source_id: str
    operation: str
    force_refresh: bool


@dataclass
class ViewModel:
    """The only shape the rendering layer depends on."""

    source_id: str
    status: LoadStatus = LoadStatus.IDLE
    data: list[RecommendationRecord] | list[CategoryBucket] = field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    is_stale: bool = False
    fetched_at_millis: int | None = None
    retry: RetryContext | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "sourceId": self.source_id,
            "status": self.status.value,
            "data": [item.to_dict() for item in self.data],
            "error": self.error,
            "errorKind": self.error_kind,
            "isStale": self.is_stale,
            "fetchedAtMillis": self.fetched_at_millis,
            "retry": (
                {
                    "sourceId": self.retry.source_id,
                    "operation": self.retry.operation,
                    "forceRefresh": self.retry.force_refresh,
                }
                if self.retry
                else None
            ),
        }

"""Tests for the filter pipeline and de-duplication."""

from animuse.core.contracts import FilterSpec
from animuse.core.dedupe import dedupe, normalize_title
from animuse.core.filtering import filter_records, run_filter_task

from conftest import make_record


def _catalog():
    return [
        make_record("Cowboy Bebop", rating=8.9, year=1998, genres=["Action", "Sci-Fi"],
                    studios=["Sunrise"], mood_match_score=6.0),
        make_record("Mob Psycho 100", rating=8.5, year=2016, genres=["Action", "Comedy"],
                    studios=["Bones"], mood_match_score=9.0),
        make_record("K-On!", rating=7.8, year=2009, genres=["Comedy", "Music"],
                    studios=["Kyoto Animation"], mood_match_score=4.0),
        make_record("Undated OVA", rating=6.5, genres=["Drama"], studios=["Bones"]),
        make_record("Unrated Pilot", year=2020, genres=["Action"]),
    ]


def _titles(records) -> list[str]:
    return [r.title for r in records]


def test_default_spec_keeps_every_record():
    records = _catalog()
    result = filter_records(records, FilterSpec())

    assert sorted(_titles(result)) == sorted(_titles(records))


def test_default_sort_is_by_mood_and_stable():
    result = filter_records(_catalog(), FilterSpec())

    assert _titles(result) == [
        "Mob Psycho 100",
        "Cowboy Bebop",
        "K-On!",
        "Undated OVA",
        "Unrated Pilot",
    ]


def test_prioritize_new_releases_sorts_by_year():
    result = filter_records(_catalog(), FilterSpec(prioritize_new_releases=True))

    assert _titles(result)[:3] == ["Unrated Pilot", "Mob Psycho 100", "K-On!"]
    assert _titles(result)[-1] == "Undated OVA"


def test_rating_floor_is_monotonic():
    records = _catalog()
    sizes = [len(filter_records(records, FilterSpec(min_rating=r))) for r in (0, 6, 8, 8.6, 9.5)]

    assert sizes == sorted(sizes, reverse=True)
    assert sizes[-1] == 0


def test_rating_floor_treats_missing_rating_as_zero():
    result = filter_records(_catalog(), FilterSpec(min_rating=1.0))

    assert "Unrated Pilot" not in _titles(result)


def test_genre_filter_matches_any():
    result = filter_records(_catalog(), FilterSpec(genres=frozenset({"Music", "Drama"})))

    assert sorted(_titles(result)) == ["K-On!", "Undated OVA"]


def test_year_range_is_inclusive_and_monotonic():
    records = _catalog()
    wide = filter_records(records, FilterSpec(year_range=(1990, 2020)))
    narrow = filter_records(records, FilterSpec(year_range=(2009, 2016)))

    assert len(narrow) <= len(wide)
    assert sorted(_titles(narrow)) == ["K-On!", "Mob Psycho 100", "Undated OVA"]


def test_year_range_open_side():
    result = filter_records(_catalog(), FilterSpec(year_range=(2010, None)))

    assert sorted(_titles(result)) == ["Mob Psycho 100", "Undated OVA", "Unrated Pilot"]


def test_missing_year_sentinel():
    """A configured sentinel year places undated records in the range check."""
    spec = FilterSpec(year_range=(2010, 2030), missing_year=2000)
    result = filter_records(_catalog(), spec)

    assert "Undated OVA" not in _titles(result)


def test_studio_filter():
    result = filter_records(_catalog(), FilterSpec(studios=frozenset({"Bones"})))

    assert sorted(_titles(result)) == ["Mob Psycho 100", "Undated OVA"]


def test_exclude_watched_uses_normalized_titles():
    spec = FilterSpec(exclude_watched=True)
    result = filter_records(_catalog(), spec, excluded_titles=["  cowboy BEBOP "])

    assert "Cowboy Bebop" not in _titles(result)
    assert len(result) == 4


def test_watched_titles_ignored_when_not_excluding():
    result = filter_records(_catalog(), FilterSpec(), excluded_titles=["Cowboy Bebop"])

    assert "Cowboy Bebop" in _titles(result)


def test_mood_threshold():
    result = filter_records(_catalog(), FilterSpec(mood_match_threshold=5.0))

    assert _titles(result) == ["Mob Psycho 100", "Cowboy Bebop"]


def test_run_filter_task_payload():
    payload = {
        "records": _catalog(),
        "spec": FilterSpec(min_rating=8.0),
        "excluded_titles": [],
    }

    assert _titles(run_filter_task(payload)) == ["Mob Psycho 100", "Cowboy Bebop"]


def test_dedupe_keeps_first_occurrence():
    records = [make_record("Foo"), make_record(" foo "), make_record("Bar")]
    result = dedupe(records)

    assert result == [records[0], records[2]]


def test_dedupe_empty_and_normalize():
    assert dedupe([]) == []
    assert normalize_title(None) == ""
    assert normalize_title("  Akira ") == "akira"

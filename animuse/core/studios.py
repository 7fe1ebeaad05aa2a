"""Studio catalog profiles: cache keys, remote actions and bucket rules."""

from dataclasses import dataclass

from animuse.core.classifier import (
    OrderedRule,
    any_of,
    catch_all,
    genres_any,
    rating_at_least,
    title_contains_any,
    year_at_least,
    year_at_most,
)


@dataclass(frozen=True)
class StudioProfile:
    """One catalog partition served by a studio page."""

    source_id: str
    name: str
    cache_key: str
    action_path: str
    rules: tuple[OrderedRule, ...]

    @property
    def bucket_names(self) -> list[str]:
        names: list[str] = []
        for rule in self.rules:
            if rule.name not in names:
                names.append(rule.name)
        return names


GHIBLI = StudioProfile(
    source_id="ghibli",
    name="Studio Ghibli",
    cache_key="studio_ghibli_anime_cache",
    action_path="externalApis:fetchStudioGhibliAnime",
    rules=(
        OrderedRule("high_rated", rating_at_least(8.0), cap=10),
        OrderedRule("classics", year_at_most(2000), cap=8),
        OrderedRule("recent", year_at_least(2010), cap=8),
        OrderedRule("films", catch_all, cap=12),
    ),
)

MADHOUSE = StudioProfile(
    source_id="madhouse",
    name="Madhouse",
    cache_key="madhouse_anime_cache",
    action_path="externalApis:fetchMadhouseAnime",
    rules=(
        OrderedRule(
            "legendary",
            any_of(
                rating_at_least(8.5),
                title_contains_any("death note", "hunter x hunter", "monster"),
            ),
            cap=12,
        ),
        OrderedRule("action", genres_any("Action", "Adventure", "Superhero"), cap=10),
        OrderedRule(
            "psychological",
            genres_any("Psychological", "Thriller", "Horror", "Mystery"),
            cap=8,
        ),
        OrderedRule("recent", year_at_least(2015), cap=10),
        OrderedRule("more", catch_all, cap=12),
    ),
)

MAPPA = StudioProfile(
    source_id="mappa",
    name="MAPPA",
    cache_key="mappa_anime_cache",
    action_path="externalApis:fetchMappaAnime",
    rules=(
        OrderedRule(
            "legendary",
            any_of(
                rating_at_least(8.5),
                title_contains_any(
                    "attack on titan",
                    "jujutsu kaisen",
                    "chainsaw man",
                    "vinland saga",
                    "hell's paradise",
                ),
            ),
            cap=12,
        ),
        OrderedRule(
            "action",
            genres_any("Action", "Adventure", "Supernatural", "Martial Arts"),
            cap=10,
        ),
        OrderedRule("mature", genres_any("Drama", "Psychological", "Thriller", "Horror"), cap=8),
        OrderedRule("recent", year_at_least(2020), cap=10),
        OrderedRule("more", catch_all, cap=12),
    ),
)

BONES = StudioProfile(
    source_id="bones",
    name="Bones",
    cache_key="bones-anime-cache",
    action_path="externalApis:fetchBonesAnime",
    rules=(
        OrderedRule(
            "legendary",
            any_of(
                rating_at_least(8.5),
                title_contains_any(
                    "fullmetal alchemist",
                    "brotherhood",
                    "soul eater",
                    "mob psycho 100",
                    "ouran high school host club",
                    "darker than black",
                    "eureka seven",
                    "wolf's rain",
                    "my hero academia",
                    "noragami",
                ),
            ),
            cap=12,
        ),
        OrderedRule(
            "action",
            genres_any("Action", "Adventure", "Superhero", "Mecha", "Martial Arts"),
            cap=12,
        ),
        OrderedRule("recent", year_at_least(2018), cap=12),
        OrderedRule(
            "supernatural",
            genres_any("Supernatural", "Fantasy", "Mystery", "Sci-Fi", "Magic"),
            cap=12,
        ),
        # Bones pages fold leftovers into the action row
        OrderedRule("action", catch_all),
    ),
)

KYOTO_ANIMATION = StudioProfile(
    source_id="kyoto-animation",
    name="Kyoto Animation",
    cache_key="kyoto_animation_anime_cache",
    action_path="externalApis:fetchKyotoAnimationAnime",
    rules=(
        OrderedRule(
            "legendary",
            any_of(
                rating_at_least(8.5),
                title_contains_any(
                    "clannad",
                    "violet evergarden",
                    "silent voice",
                    "haruhi",
                    "disappearance",
                ),
            ),
            cap=12,
        ),
        OrderedRule("movies", title_contains_any("movie", "film"), cap=8),
        OrderedRule("drama", genres_any("Drama", "Romance", "Slice of Life"), cap=10),
        OrderedRule("comedy", genres_any("Comedy", "School", "Music"), cap=10),
        OrderedRule("more", catch_all, cap=12),
    ),
)

STUDIOS: dict[str, StudioProfile] = {
    profile.source_id: profile
    for profile in (GHIBLI, MADHOUSE, MAPPA, BONES, KYOTO_ANIMATION)
}


def get_studio(source_id: str) -> StudioProfile | None:
    """Look up a studio profile by source id (case-insensitive)."""
    return STUDIOS.get(source_id.strip().lower())


def list_studios() -> list[StudioProfile]:
    return list(STUDIOS.values())

"""Tests for the fallback search cascade."""

import pytest

from kpmatch.core.models import CatalogRecord, Release
from kpmatch.worker.search_strategy import (
    FallbackSearchStrategy,
    SearchStage,
    default_stages,
    query_names,
    query_title,
    query_title_and_names,
    query_with_year,
)
from kpmatch.worker.similarity import is_match


def kp(kp_id, year, ru="", en="", original=""):
    return CatalogRecord(
        kinopoisk_id=kp_id, name_ru=ru, name_en=en, name_original=original, year=year
    )


@pytest.fixture
def strategy(catalog):
    return FallbackSearchStrategy(catalog.search, default_stages(2), strict_fallback=False)


def test_query_builders():
    release = Release(title="Веном", names=("Venom", "Ядовитый"), year=2018)

    assert query_with_year(release) == "Веном Venom Ядовитый 2018"
    assert query_title_and_names(release) == "Веном Venom Ядовитый"
    assert query_names(release) == "Venom Ядовитый"
    assert query_title(release) == "Веном"


def test_query_with_year_keeps_empty_names_slot():
    assert query_with_year(Release(title="Venom", year=2018)) == "Venom  2018"
    assert query_with_year(Release(title="Venom")) == "Venom"


def test_default_stage_order():
    stages = default_stages()
    assert [s.name for s in stages] == ["with_year", "title_and_names", "names", "title"]
    assert [s.strict for s in stages] == [True, False, False, False]


class TestPhaseA:
    async def test_exact_match_with_year(self, strategy, catalog, venom_release):
        catalog.search_results["Venom  2018"] = [kp(841176, 2018, en="Venom")]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 841176
        assert catalog.queries == ["Venom  2018"]

    async def test_first_of_several_matches_wins(self, strategy, catalog, venom_release):
        catalog.search_results["Venom  2018"] = [
            kp(1, 2018, en="Carnage"),
            kp(2, 2018, en="Venom"),
            kp(3, 2018, ru="Venom"),
        ]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 2

    async def test_non_matching_results_fall_through(self, strategy, catalog, venom_release):
        catalog.search_results["Venom  2018"] = [kp(1, 2017, en="Venom")]
        catalog.search_results["Venom"] = [kp(2, 2019, en="Venom 2")]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 2


class TestPhaseB:
    async def test_title_query_keeps_candidates_within_a_year(
        self, strategy, catalog, venom_release
    ):
        catalog.search_results["Venom"] = [kp(1, 2017), kp(2, 2019)]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 1

    async def test_candidates_two_years_away_rejected(
        self, strategy, catalog, venom_release
    ):
        catalog.search_results["Venom"] = [kp(1, 2020), kp(2, 2017)]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 2

    async def test_identical_queries_sent_once(self, strategy, catalog, venom_release):
        # No names: title+names and title-only queries are both "Venom"
        await strategy.resolve(venom_release)

        assert catalog.queries == ["Venom  2018", "Venom"]

    async def test_names_only_stage(self, strategy, catalog):
        release = Release(title="Веном", names=("Venom",), year=2018)
        catalog.search_results["Venom"] = [kp(1, 2016), kp(2, 2018)]

        found = await strategy.resolve(release)

        assert found.kinopoisk_id == 2
        assert catalog.queries == ["Веном Venom 2018", "Веном Venom", "Venom"]

    async def test_title_only_stage(self, strategy, catalog):
        release = Release(title="Веном", names=("Venom",), year=2018)
        catalog.search_results["Веном"] = [kp(7, 2019)]

        found = await strategy.resolve(release)

        assert found.kinopoisk_id == 7
        assert catalog.queries[-1] == "Веном"

    async def test_unknown_release_year_keeps_all(self, strategy, catalog):
        release = Release(title="Venom")
        catalog.search_results["Venom"] = [kp(1, 1990)]

        found = await strategy.resolve(release)

        assert found.kinopoisk_id == 1

    async def test_all_stages_empty(self, strategy, catalog):
        release = Release(title="Веном", names=("Venom",), year=2018)

        assert await strategy.resolve(release) is None
        assert catalog.queries == [
            "Веном Venom 2018",
            "Веном Venom",
            "Venom",
            "Веном",
        ]

    async def test_never_returns_candidate_outside_band(self, strategy, catalog):
        release = Release(title="Веном", names=("Venom",), year=2018)
        for query in ["Веном Venom", "Venom", "Веном"]:
            catalog.search_results[query] = [kp(1, 2010), kp(2, 2025), kp(3, 2020)]

        assert await strategy.resolve(release) is None


class TestSearchErrors:
    async def test_error_treated_as_empty(self, strategy, catalog, venom_release):
        catalog.failing_queries.add("Venom  2018")
        catalog.search_results["Venom"] = [kp(5, 2018)]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 5
        assert catalog.queries == ["Venom  2018", "Venom"]

    async def test_all_searches_fail(self, strategy, catalog, log_messages):
        release = Release(title="Веном", names=("Venom",), year=2018)
        catalog.failing_queries.update(
            ["Веном Venom 2018", "Веном Venom", "Venom", "Веном"]
        )

        assert await strategy.resolve(release) is None
        assert sum("Error searching catalog" in m for m in log_messages) == 4


class TestStrictFallback:
    async def test_year_band_candidate_rejected_by_similarity(self, catalog, venom_release):
        strategy = FallbackSearchStrategy(catalog.search, strict_fallback=True)
        catalog.search_results["Venom"] = [kp(1, 2017, en="Venom")]

        assert await strategy.resolve(venom_release) is None

    async def test_similar_candidate_survives(self, catalog, venom_release):
        strategy = FallbackSearchStrategy(catalog.search, strict_fallback=True)
        catalog.search_results["Venom"] = [kp(1, 2017, en="Venom"), kp(2, None, en="Venom")]

        found = await strategy.resolve(venom_release)

        assert found.kinopoisk_id == 2

    async def test_rejection_stops_cascade(self, catalog):
        strategy = FallbackSearchStrategy(catalog.search, strict_fallback=True)
        release = Release(title="Веном", names=("Venom",), year=2018)
        catalog.search_results["Веном Venom"] = [kp(1, 2017, en="Carnage")]
        catalog.search_results["Venom"] = [kp(2, 2018, en="Venom")]

        assert await strategy.resolve(release) is None
        assert "Venom" not in catalog.queries


async def test_custom_stages(catalog):
    stages = [
        SearchStage("title", query_title, is_match, strict=True),
        SearchStage("with_year", query_with_year, is_match, strict=True),
    ]
    strategy = FallbackSearchStrategy(catalog.search, stages)
    release = Release(title="Venom", year=2018)
    catalog.search_results["Venom"] = [kp(1, 2018, en="Venom")]

    found = await strategy.resolve(release)

    assert found.kinopoisk_id == 1
    assert catalog.queries == ["Venom"]


async def test_empty_query_skipped(catalog):
    strategy = FallbackSearchStrategy(catalog.search, strict_fallback=False)
    release = Release(title="", names=(), year=None)

    assert await strategy.resolve(release) is None
    assert catalog.queries == []

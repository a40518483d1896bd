"""Fallback search strategy: progressively looser catalog queries.

When a release page has no embedded catalog id, the release is resolved by
free-text search. The first stage queries title, alternate names and year
and keeps only exact matches. If that fails, the year is dropped from the
query and query terms are removed one group at a time, keeping candidates
whose year is within a small band of the release year. The first stage that
yields a plausible candidate wins; the search service's ordering decides
between candidates of the same stage.

Stages are plain data so they can be reordered or extended without touching
the control flow:

    stages = default_stages(proximity=2)
    strategy = FallbackSearchStrategy(client.search, stages)
    record = await strategy.resolve(release)
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from kpmatch.core.config import settings
from kpmatch.core.exceptions import FetchError
from kpmatch.core.models import CatalogRecord, Release, SearchCatalog
from kpmatch.worker.similarity import is_match, is_year_plausible


@dataclass(frozen=True)
class SearchStage:
    """One query of the fallback cascade.

    Attributes:
        name: Label used in logs.
        build_query: Builds the free-text query for a release.
        accept: Candidate filter applied to the search results.
        strict: True when ``accept`` already enforces the similarity filter.
    """

    name: str
    build_query: Callable[[Release], str]
    accept: Callable[[Release, CatalogRecord], bool]
    strict: bool = False


def query_with_year(release: Release) -> str:
    return f"{release.title} {release.names_text} {release.year or ''}".strip()


def query_title_and_names(release: Release) -> str:
    return f"{release.title} {release.names_text}".strip()


def query_names(release: Release) -> str:
    return release.names_text.strip()


def query_title(release: Release) -> str:
    return release.title.strip()


def default_stages(proximity: Optional[int] = None) -> List[SearchStage]:
    """Builds the standard cascade: exact match with year, then three yearless stages."""
    if proximity is None:
        proximity = settings.YEAR_PROXIMITY
    plausible = partial(_year_plausible, proximity=proximity)
    return [
        SearchStage("with_year", query_with_year, is_match, strict=True),
        SearchStage("title_and_names", query_title_and_names, plausible),
        SearchStage("names", query_names, plausible),
        SearchStage("title", query_title, plausible),
    ]


def _year_plausible(release: Release, candidate: CatalogRecord, proximity: int) -> bool:
    return is_year_plausible(release, candidate, proximity)


class FallbackSearchStrategy:
    """Resolves a release by running search stages until one yields a candidate.

    Attributes:
        search: Coroutine querying the catalog by free text.
        stages: Ordered stages to try.
        strict_fallback: When True, the candidates picked by a non-strict
            stage are passed through the similarity filter before the first
            survivor is returned. No further stages are tried in that case.
    """

    def __init__(
        self,
        search: SearchCatalog,
        stages: Optional[Sequence[SearchStage]] = None,
        strict_fallback: Optional[bool] = None,
    ):
        self.search = search
        self.stages = list(stages) if stages is not None else default_stages()
        self.strict_fallback = (
            settings.STRICT_FALLBACK if strict_fallback is None else strict_fallback
        )

    async def _search(self, query: str) -> List[CatalogRecord]:
        try:
            return list(await self.search(query))
        except FetchError as e:
            logger.warning(f"Error searching catalog for '{query}': {e}")
            return []

    async def resolve(self, release: Release) -> Optional[CatalogRecord]:
        """Runs the cascade for one release.

        Each distinct query is sent at most once per call; search errors
        count as an empty result and the cascade moves on.

        Returns:
            The first plausible candidate, or None when no stage produced one.
        """
        seen: Dict[str, List[CatalogRecord]] = {}

        for stage in self.stages:
            query = stage.build_query(release)
            if not query:
                logger.debug(f"[{stage.name}] empty query for '{release.title}', skipped")
                continue

            if query not in seen:
                seen[query] = await self._search(query)
            results = seen[query]

            plausible = [c for c in results if stage.accept(release, c)]
            logger.debug(
                f"[{stage.name}] '{query}': {len(results)} results, "
                f"{len(plausible)} plausible"
            )
            if not plausible:
                continue

            if self.strict_fallback and not stage.strict:
                plausible = [c for c in plausible if is_match(release, c)]
                if not plausible:
                    logger.debug(
                        f"[{stage.name}] candidates rejected by similarity filter "
                        f"for '{release.title}'"
                    )
                    return None

            return plausible[0]

        return None

"""Similarity filter deciding whether a release and a catalog record are the same work.

Both predicates here are pure and total: they never raise and never touch
the network, so they can be applied to any candidate list.
"""

from typing import Optional

from kpmatch.core.models import CatalogRecord, Release
from kpmatch.core.normalization import Normalizer


def _known(year: Optional[int]) -> bool:
    return bool(year)


def is_match(release: Release, candidate: CatalogRecord) -> bool:
    """Returns True when the candidate denotes the same work as the release.

    Titles match when the normalized set of release titles (title plus
    alternate names) intersects the normalized set of the candidate's
    localized, English and original titles, or when both sets are empty.
    Years match when they are equal or either one is unknown.
    """
    release_titles = Normalizer.title_set(release.titles())
    candidate_titles = Normalizer.title_set(candidate.titles())

    if release_titles or candidate_titles:
        if not release_titles & candidate_titles:
            return False

    if _known(release.year) and _known(candidate.year):
        return release.year == candidate.year
    return True


def is_year_plausible(
    release: Release, candidate: CatalogRecord, proximity: int = 2
) -> bool:
    """Year-proximity filter used by the yearless search stages.

    Rejects a candidate only when both years are known and differ by
    ``proximity`` or more; an unknown year on either side is kept.
    """
    if not (_known(release.year) and _known(candidate.year)):
        return True
    return abs(candidate.year - release.year) < proximity

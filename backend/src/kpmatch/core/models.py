"""Domain models for release resolution.

Releases are scraped torrent items; catalog records are Kinopoisk film
entries. Both are immutable and hashable so a batch can map one to the
other in a plain dict.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from kpmatch.core.config import settings

_YEAR_RE = re.compile(r"\d{4}")


def parse_year(value: Any) -> Optional[int]:
    """Parses a release year from an int or a string like "2018" or "2018-2020".

    Returns None when the year is missing or unusable. Zero is treated as
    unknown, matching how upstream catalogs report missing years.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    match = _YEAR_RE.search(str(value))
    if not match:
        return None
    return int(match.group(0)) or None


@dataclass(frozen=True)
class Release:
    """A torrent release awaiting identification.

    Attributes:
        title: Primary (usually localized) title.
        names: Alternate names, in the order the tracker lists them.
        year: Release year, None when unknown.
        link: Detail page URL used to look for an embedded catalog id.
    """

    title: str
    names: Tuple[str, ...] = ()
    year: Optional[int] = None
    link: str = ""

    def __post_init__(self):
        # Accept any iterable for names but store a tuple so we stay hashable
        if not isinstance(self.names, tuple):
            object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "year", parse_year(self.year))

    @property
    def names_text(self) -> str:
        return " ".join(n for n in self.names if n)

    def titles(self) -> Tuple[str, ...]:
        return (self.title,) + self.names

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Release":
        names = data.get("names") or ()
        if isinstance(names, str):
            names = [n.strip() for n in names.split("/") if n.strip()]
        return cls(
            title=data.get("title") or data.get("name") or "",
            names=tuple(names),
            year=data.get("year"),
            link=data.get("link") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["names"] = list(self.names)
        return data


@dataclass(frozen=True)
class CatalogRecord:
    """A Kinopoisk catalog entry.

    Attributes:
        kinopoisk_id: Unique catalog identifier.
        name_ru: Localized (Russian) title.
        name_en: English title.
        name_original: Original-language title.
        year: Release year, None when unknown.
        web_url: Canonical page on the catalog site.
    """

    kinopoisk_id: int
    name_ru: str = ""
    name_en: str = ""
    name_original: str = ""
    year: Optional[int] = None
    web_url: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "year", parse_year(self.year))

    def titles(self) -> Tuple[str, ...]:
        return (self.name_ru, self.name_en, self.name_original)

    @classmethod
    def from_api(
        cls, payload: Dict[str, Any], domain: Optional[str] = None
    ) -> "CatalogRecord":
        """Builds a record from a catalog API JSON object.

        Handles both the film detail shape (``kinopoiskId``) and the keyword
        search shape (``filmId``).

        Raises:
            ValueError: If the payload carries no numeric identifier.
        """
        raw_id = payload.get("kinopoiskId", payload.get("filmId"))
        if raw_id is None:
            raise ValueError(f"Catalog payload has no id: {payload!r}")
        kp_id = int(raw_id)
        web_url = payload.get("webUrl") or (
            f"https://{domain or settings.KP_WEB_DOMAIN}/film/{kp_id}/"
        )
        return cls(
            kinopoisk_id=kp_id,
            name_ru=payload.get("nameRu") or "",
            name_en=payload.get("nameEn") or "",
            name_original=payload.get("nameOriginal") or "",
            year=payload.get("year"),
            web_url=web_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Populated once per release by the batch resolver; absence means unresolved.
ResolutionResult = Dict[Release, CatalogRecord]


def index_by_id(records: Iterable[CatalogRecord]) -> Dict[int, CatalogRecord]:
    index: Dict[int, CatalogRecord] = {}
    for record in records:
        index.setdefault(record.kinopoisk_id, record)
    return index


# Capabilities consumed by the resolution pipeline. Implementations raise
# kpmatch.core.exceptions.FetchError subclasses on transport failure.
FetchDetailPage = Callable[[Release], Awaitable[str]]
SearchCatalog = Callable[[str], Awaitable[List[CatalogRecord]]]
FetchCatalogRecordByID = Callable[[int], Awaitable[CatalogRecord]]

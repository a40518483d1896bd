from typing import Dict, Iterable, List, Optional

import pytest
from loguru import logger

from kpmatch.core.exceptions import (
    CatalogError,
    CatalogNotFoundError,
    PageFetchError,
)
from kpmatch.core.models import CatalogRecord, Release

# ============================================================================
# FAKE COLLABORATORS
# ============================================================================
# The resolver only sees async callables, so tests drive it with in-memory
# fakes that record every call they receive.
# ============================================================================


class FakeCatalog:
    """In-memory catalog: canned search results and records by id."""

    def __init__(self):
        self.search_results: Dict[str, List[CatalogRecord]] = {}
        self.records: Dict[int, CatalogRecord] = {}
        self.failing_queries: set = set()
        self.queries: List[str] = []
        self.fetched_ids: List[int] = []

    def add_records(self, records: Iterable[CatalogRecord]) -> None:
        for record in records:
            self.records[record.kinopoisk_id] = record

    async def search(self, query: str) -> List[CatalogRecord]:
        self.queries.append(query)
        if query in self.failing_queries:
            raise CatalogError(f"search failed for {query!r}")
        return list(self.search_results.get(query, []))

    async def fetch_film(self, kinopoisk_id: int) -> CatalogRecord:
        self.fetched_ids.append(kinopoisk_id)
        if kinopoisk_id not in self.records:
            raise CatalogNotFoundError(f"no film {kinopoisk_id}")
        return self.records[kinopoisk_id]


class FakePages:
    """In-memory tracker: detail page bodies keyed by release link."""

    def __init__(self):
        self.pages: Dict[str, str] = {}
        self.failing_links: set = set()
        self.fetched: List[str] = []

    async def fetch(self, release: Release) -> str:
        self.fetched.append(release.link)
        if release.link in self.failing_links:
            raise PageFetchError(f"cannot fetch {release.link}")
        return self.pages.get(release.link, "<html><body></body></html>")


def details_page(*hrefs: str, outside: Optional[str] = None) -> str:
    """Builds a tracker page with the given links inside table#details."""
    links = "".join(f'<a href="{href}">link</a>' for href in hrefs)
    extra = f'<a href="{outside}">outside</a>' if outside else ""
    return (
        "<html><body>"
        f"<div class='header'>{extra}</div>"
        f"<table id='details'><tr><td>{links}</td></tr></table>"
        "</body></html>"
    )


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def pages():
    return FakePages()


@pytest.fixture
def venom_release():
    return Release(
        title="Venom",
        names=(),
        year=2018,
        link="https://tracker.example/torrent/1",
    )


@pytest.fixture
def venom_record():
    return CatalogRecord(
        kinopoisk_id=841176,
        name_ru="Веном",
        name_en="Venom",
        name_original="Venom",
        year=2018,
        web_url="https://www.kinopoisk.ru/film/841176/",
    )


@pytest.fixture
def log_messages():
    """Captures loguru output for assertions (message objects carry .record)."""
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_page():
    return details_page

"""Identifier extractor: finds a catalog id embedded in a release's detail page.

Trackers often link the Kinopoisk page of a film right in the release
description. When such a link is present we can skip fuzzy search entirely
and resolve the release by id, first against the known-records snapshot
and only then with a remote fetch.
"""

from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from loguru import logger

from kpmatch.core.config import settings
from kpmatch.core.exceptions import FetchError, IdentifierParseError
from kpmatch.core.known_records import KnownRecords
from kpmatch.core.models import (
    CatalogRecord,
    FetchCatalogRecordByID,
    FetchDetailPage,
    Release,
)


class IdentifierExtractor:
    """Resolves releases through catalog links on their detail pages.

    Attributes:
        fetch_page: Coroutine returning a release's detail page body.
        fetch_record: Coroutine fetching a catalog record by id.
        known_records: Snapshot checked before any remote fetch.
        domain: Catalog web domain whose links carry the identifier.
        selector: CSS selector of the page region holding the links.
    """

    def __init__(
        self,
        fetch_page: FetchDetailPage,
        fetch_record: FetchCatalogRecordByID,
        known_records: Optional[KnownRecords] = None,
        domain: Optional[str] = None,
        selector: Optional[str] = None,
    ):
        self.fetch_page = fetch_page
        self.fetch_record = fetch_record
        self.known_records = known_records or KnownRecords()
        self.domain = (domain or settings.KP_WEB_DOMAIN).lower()
        self.selector = selector if selector is not None else settings.DETAILS_SELECTOR

    def extract_id(self, body: str) -> int:
        """Parses the first catalog link out of a page body.

        The region matched by ``selector`` is scanned when the page has one,
        otherwise the whole document. The identifier is the last path segment
        of the first link whose host is the catalog domain.

        Raises:
            IdentifierParseError: If no catalog link exists or its trailing
                segment is not an integer.
        """
        soup = BeautifulSoup(body or "", "html.parser")
        region = soup.select_one(self.selector) if self.selector else None
        if region is None:
            region = soup

        for anchor in region.find_all("a", href=True):
            try:
                parsed = urlparse(anchor["href"].strip())
            except ValueError:
                # e.g. "http://[broken" (invalid IPv6 netloc)
                continue
            if parsed.netloc.lower() != self.domain:
                continue
            candidate = parsed.path.rstrip("/").split("/")[-1]
            # int() would also take "-5", "1_000" and non-ASCII digits
            if not (candidate.isascii() and candidate.isdigit()):
                raise IdentifierParseError(
                    f"Catalog link has non-numeric id: {anchor['href']!r}"
                )
            return int(candidate)

        raise IdentifierParseError("No catalog link on page")

    async def find_by_embedded_id(self, release: Release) -> Optional[CatalogRecord]:
        """Resolves a release from the catalog id on its detail page.

        Returns:
            The catalog record whose id equals the embedded one, or None when
            the page cannot be fetched, carries no id, or the record fetch
            fails.
        """
        try:
            body = await self.fetch_page(release)
        except FetchError as e:
            logger.warning(f"Detail page fetch failed for {release.link}: {e}")
            return None

        try:
            kp_id = self.extract_id(body)
        except IdentifierParseError as e:
            logger.debug(f"No embedded id for '{release.title}': {e}")
            return None

        known = self.known_records.get(kp_id)
        if known is not None:
            logger.debug(f"Embedded id {kp_id} found in known records")
            return known

        try:
            record = await self.fetch_record(kp_id)
        except FetchError as e:
            logger.warning(f"Catalog fetch failed for id {kp_id}: {e}")
            return None

        if record is None or record.kinopoisk_id != kp_id:
            logger.warning(
                f"Catalog returned mismatched record for id {kp_id}: {record!r}"
            )
            return None
        return record

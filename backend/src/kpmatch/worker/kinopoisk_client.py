"""Kinopoisk catalog API client.

This module provides the catalog capabilities consumed by the resolver:
- Free-text search (``search``)
- Record fetch by identifier (``fetch_film``)
- Rate limiting shared by all requests of one client
- Transport and HTTP errors surfaced as CatalogError

API documentation: https://kinopoiskapiunofficial.tech/documentation/api/
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from kpmatch.core.config import settings
from kpmatch.core.exceptions import CatalogError, CatalogNotFoundError
from kpmatch.core.models import CatalogRecord


class KinopoiskClient:
    """Client for searching and fetching films from the Kinopoisk API."""

    USER_AGENT = "kpmatch/0.1.0"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the client.

        Args:
            api_key: X-API-KEY for the catalog API (defaults to settings).
            base_url: API root (defaults to settings).
            session: Optional aiohttp session. If not provided, one is created
                lazily and closed by ``close()``.
            rate_limit_delay: Minimum seconds between two requests.
            timeout: Total request timeout in seconds.
        """
        self.api_key = api_key if api_key is not None else settings.KP_API_KEY
        self.base_url = (base_url or settings.KP_API_URL).rstrip("/")
        self.rate_limit_delay = (
            settings.KP_RATE_LIMIT_DELAY if rate_limit_delay is None else rate_limit_delay
        )
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self._session = session
        self._owns_session = session is None
        self._last_request_time = 0.0
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "KinopoiskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.USER_AGENT,
                    "X-API-KEY": self.api_key,
                    "Content-Type": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _rate_limit(self):
        """Enforce rate limiting between requests, across concurrent callers."""
        async with self._rate_lock:
            loop = asyncio.get_running_loop()
            time_since_last = loop.time() - self._last_request_time
            if time_since_last < self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay - time_since_last)
            self._last_request_time = loop.time()

    async def _get_json(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        session = await self._ensure_session()
        await self._rate_limit()

        url = f"{self.base_url}{path}"
        try:
            async with session.get(url, params=params) as response:
                if response.status == 200:
                    try:
                        data = await response.json()
                    except ValueError as e:
                        raise CatalogError(f"Invalid JSON from {url}: {e}") from e
                    if not isinstance(data, dict):
                        raise CatalogError(
                            f"Unexpected payload from {url}: {type(data).__name__}"
                        )
                    return data
                if response.status == 404:
                    raise CatalogNotFoundError(f"Not found: {url}")
                if response.status == 401:
                    raise CatalogError("Catalog API rejected the API key (401)")
                if response.status == 429:
                    raise CatalogError("Catalog API rate limit exceeded (429)")
                raise CatalogError(f"Catalog API error: status={response.status} url={url}")
        except aiohttp.ClientError as e:
            raise CatalogError(f"Network error requesting {url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise CatalogError(f"Timeout requesting {url}") from e

    async def search(self, query: str) -> List[CatalogRecord]:
        """Search films by keyword.

        Returns:
            Records in the order the catalog ranks them. Malformed entries are
            skipped.

        Raises:
            CatalogError: On transport, HTTP or payload errors.
        """
        data = await self._get_json(
            "/v2.1/films/search-by-keyword", params={"keyword": query, "page": 1}
        )
        films = data.get("films") or []
        if not isinstance(films, list):
            raise CatalogError(f"Unexpected films payload for '{query}'")
        records = []
        for item in films:
            try:
                records.append(CatalogRecord.from_api(item))
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed search result: {e}")
        logger.debug(f"Catalog search '{query}': {len(records)} results")
        return records

    async def fetch_film(self, kinopoisk_id: int) -> CatalogRecord:
        """Fetch one film by catalog identifier.

        Raises:
            CatalogNotFoundError: If the catalog has no such film.
            CatalogError: On other transport, HTTP or payload errors.
        """
        data = await self._get_json(f"/v2.2/films/{kinopoisk_id}")
        try:
            record = CatalogRecord.from_api(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise CatalogError(f"Malformed film payload for {kinopoisk_id}: {e}") from e
        logger.debug(f"Fetched film {kinopoisk_id}: {record.name_ru or record.name_en}")
        return record

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

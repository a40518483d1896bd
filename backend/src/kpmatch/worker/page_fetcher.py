"""Fetches release detail pages from the tracker."""

import asyncio
from typing import Optional

import aiohttp
from loguru import logger

from kpmatch.core.config import settings
from kpmatch.core.exceptions import PageFetchError
from kpmatch.core.models import Release


class PageFetcher:
    """Downloads the HTML body behind a release's link."""

    USER_AGENT = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    )

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
    ):
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def fetch(self, release: Release) -> str:
        """Return the detail page body of a release.

        Raises:
            PageFetchError: If the release has no link, the server answers
                with a non-200 status, or the request fails.
        """
        if not release.link:
            raise PageFetchError(f"Release '{release.title}' has no link")

        session = await self._ensure_session()
        try:
            async with session.get(release.link) as response:
                if response.status != 200:
                    raise PageFetchError(
                        f"status={response.status} fetching {release.link}"
                    )
                try:
                    body = await response.text()
                except UnicodeDecodeError as e:
                    raise PageFetchError(
                        f"Cannot decode page body of {release.link}: {e}"
                    ) from e
        except aiohttp.ClientError as e:
            raise PageFetchError(f"Network error fetching {release.link}: {e}") from e
        except asyncio.TimeoutError as e:
            raise PageFetchError(f"Timeout fetching {release.link}") from e

        logger.debug(f"Fetched {len(body)} bytes from {release.link}")
        return body

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

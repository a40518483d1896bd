"""Batch resolver mapping torrent releases to catalog records.

For every release the embedded-id path is tried first and the search
fallback second. Releases are processed concurrently under a fixed worker
ceiling; writes to the shared result mapping and the stats go through a
single lock. A failure while resolving one release never affects the
others: it is logged and the release ends up unresolved.

Typical usage example:
    extractor = IdentifierExtractor(fetcher.fetch, client.fetch_film, known)
    strategy = FallbackSearchStrategy(client.search)
    resolver = BatchResolver(extractor, strategy, max_workers=5)
    result = await resolver.resolve_all(releases)
    for release, record in result.items():
        print(release.title, "->", record.kinopoisk_id)
"""

import asyncio
import time
from typing import Iterable, Optional, Tuple

from loguru import logger

from kpmatch.core.config import settings
from kpmatch.core.known_records import KnownRecords
from kpmatch.core.models import (
    CatalogRecord,
    FetchCatalogRecordByID,
    FetchDetailPage,
    Release,
    ResolutionResult,
    SearchCatalog,
)
from kpmatch.core.stats import ResolveStats
from kpmatch.worker.id_extractor import IdentifierExtractor
from kpmatch.worker.search_strategy import FallbackSearchStrategy

SOURCE_EMBEDDED_ID = "embedded_id"
SOURCE_SEARCH = "search"


def log_unresolved(release: Release) -> None:
    """Writes the single operator-facing line for an unresolved release."""
    logger.bind(unresolved=True).warning(
        f"Not found kp: title='{release.title}' names='{release.names_text}' "
        f"year={release.year or ''} link={release.link}"
    )


class BatchResolver:
    """Resolves a collection of releases with bounded parallelism.

    Attributes:
        extractor: Embedded-id resolver, tried first.
        strategy: Search fallback, tried when the extractor finds nothing.
        max_workers: Maximum releases resolved at the same time.
        stats: Counters of the most recent ``resolve_all`` run.
    """

    def __init__(
        self,
        extractor: IdentifierExtractor,
        strategy: FallbackSearchStrategy,
        max_workers: Optional[int] = None,
    ):
        self.extractor = extractor
        self.strategy = strategy
        self.max_workers = (
            settings.RESOLVE_MAX_WORKERS if max_workers is None else max_workers
        )
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.stats = ResolveStats()

    async def resolve_one(
        self, release: Release
    ) -> Tuple[Optional[CatalogRecord], Optional[str]]:
        """Resolves a single release.

        Any error raised by the embedded-id path is logged and the search
        fallback still runs.

        Returns:
            (record, source) where source is "embedded_id" or "search", or
            (None, None) when neither strategy found a record.
        """
        try:
            record = await self.extractor.find_by_embedded_id(release)
        except Exception:
            logger.exception(
                f"Embedded id lookup failed for '{release.title}', falling back to search"
            )
            record = None
        if record is not None:
            return record, SOURCE_EMBEDDED_ID

        # With STRICT_FALLBACK off, yearless search results are not re-checked
        # by the similarity filter; enable it to trade recall for precision.
        record = await self.strategy.resolve(release)
        if record is not None:
            return record, SOURCE_SEARCH

        return None, None

    async def resolve_all(self, releases: Iterable[Release]) -> ResolutionResult:
        """Resolves every release and collects the matches.

        Duplicate releases are resolved once. Completion order is arbitrary;
        the result is a mapping so it does not depend on scheduling.

        Returns:
            Mapping from release to its catalog record. Unresolved releases
            are absent and have been written to the unresolved log.
        """
        start_time = time.perf_counter()
        unique_releases = list(dict.fromkeys(releases))
        total = len(unique_releases)
        logger.info(
            f"Resolving {total} releases (max_workers={self.max_workers})"
        )

        results: ResolutionResult = {}
        stats = ResolveStats()
        self.stats = stats

        semaphore = asyncio.Semaphore(self.max_workers)
        results_lock = asyncio.Lock()

        async def process_with_semaphore(release: Release) -> None:
            failed = False
            async with semaphore:
                try:
                    record, source = await self.resolve_one(release)
                except Exception:
                    logger.exception(f"Unexpected error resolving '{release.title}'")
                    record, source, failed = None, None, True

            async with results_lock:
                stats.processed += 1
                if failed:
                    stats.errors += 1
                if record is not None and release not in results:
                    results[release] = record
                    if source == SOURCE_EMBEDDED_ID:
                        stats.by_embedded_id += 1
                    else:
                        stats.by_search += 1
                elif record is None:
                    stats.unresolved += 1

                if stats.processed % 50 == 0:
                    logger.info(f"Resolved {stats.processed}/{total} releases...")

            if record is None:
                log_unresolved(release)

        await asyncio.gather(*[process_with_semaphore(r) for r in unique_releases])

        elapsed = time.perf_counter() - start_time
        logger.info(f"Resolution finished in {elapsed:.2f}s: {stats}")
        return results


async def resolve_all(
    releases: Iterable[Release],
    fetch_page: FetchDetailPage,
    search: SearchCatalog,
    fetch_record: FetchCatalogRecordByID,
    known_records: Optional[KnownRecords] = None,
    max_workers: Optional[int] = None,
) -> ResolutionResult:
    """Wires the extractor, search strategy and batch resolver for one run."""
    extractor = IdentifierExtractor(fetch_page, fetch_record, known_records)
    strategy = FallbackSearchStrategy(search)
    resolver = BatchResolver(extractor, strategy, max_workers=max_workers)
    return await resolver.resolve_all(releases)

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from kpmatch.core.known_records import KnownRecords
from kpmatch.core.logger import setup_logging
from kpmatch.core.models import Release, ResolutionResult
from kpmatch.worker.id_extractor import IdentifierExtractor
from kpmatch.worker.kinopoisk_client import KinopoiskClient
from kpmatch.worker.page_fetcher import PageFetcher
from kpmatch.worker.resolver import BatchResolver, log_unresolved
from kpmatch.worker.search_strategy import FallbackSearchStrategy


def load_releases(path: str) -> List[Release]:
    """Reads a JSON array of release objects (title, names, year, link)."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    return [Release.from_dict(item) for item in payload]


def dump_result(result: ResolutionResult) -> str:
    pairs = [
        {"release": release.to_dict(), "record": record.to_dict()}
        for release, record in result.items()
    ]
    return json.dumps(pairs, ensure_ascii=False, indent=2)


async def run_resolve(
    releases_path: str,
    known_path: Optional[str] = None,
    out_path: Optional[str] = None,
    workers: Optional[int] = None,
) -> None:
    """Resolves a releases file against the live catalog.

    Args:
        releases_path: JSON file with the releases to resolve.
        known_path: Optional JSON snapshot of already known catalog records.
        out_path: Where to write the result; stdout when omitted.
        workers: Concurrency ceiling override.
    """
    path = Path(releases_path)
    if not path.exists():
        logger.error(f"File not found: {releases_path}")
        return

    releases = load_releases(releases_path)
    known = KnownRecords.load_json(known_path) if known_path else KnownRecords()

    async with KinopoiskClient() as client, PageFetcher() as fetcher:
        extractor = IdentifierExtractor(fetcher.fetch, client.fetch_film, known)
        strategy = FallbackSearchStrategy(client.search)
        resolver = BatchResolver(extractor, strategy, max_workers=workers)
        result = await resolver.resolve_all(releases)

    output = dump_result(result)
    if out_path:
        Path(out_path).write_text(output, encoding="utf-8")
        logger.info(f"Wrote {len(result)} matches to {out_path}")
    else:
        sys.stdout.write(output + "\n")

    logger.info(f"Stats: {resolver.stats.to_dict()}")


async def run_debug_match(title: str, names: List[str], year: Optional[int]) -> None:
    """Runs only the search fallback for one release and logs the outcome."""
    release = Release(title=title, names=tuple(names), year=year)
    logger.info(
        f"Debugging match for: '{release.title}' [{release.names_text}] {release.year or ''}"
    )

    async with KinopoiskClient() as client:
        strategy = FallbackSearchStrategy(client.search)
        record = await strategy.resolve(release)

    if record:
        logger.success(f"MATCH FOUND: ID {record.kinopoisk_id}")
        logger.info(
            f"Titles: {record.name_ru} / {record.name_en} / {record.name_original}"
        )
        logger.info(f"Year: {record.year}")
        logger.info(f"URL: {record.web_url}")
    else:
        log_unresolved(release)
        logger.warning("NO MATCH FOUND.")


def main():
    setup_logging()
    parser = argparse.ArgumentParser(description="kpmatch release resolver")
    subparsers = parser.add_subparsers(dest="command")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve a JSON file of releases"
    )
    resolve_parser.add_argument("releases", help="Path to releases JSON file")
    resolve_parser.add_argument("--known", help="Known catalog records JSON file")
    resolve_parser.add_argument("--out", help="Output JSON file (default: stdout)")
    resolve_parser.add_argument(
        "--workers", type=int, help="Concurrent releases (default: settings)"
    )

    debug_parser = subparsers.add_parser(
        "debug-match", help="Debug the search fallback for one release"
    )
    debug_parser.add_argument("title", help="Release title")
    debug_parser.add_argument(
        "--names", nargs="*", default=[], help="Alternate names"
    )
    debug_parser.add_argument("--year", type=int, help="Release year")

    args = parser.parse_args()

    if args.command == "resolve":
        asyncio.run(run_resolve(args.releases, args.known, args.out, args.workers))

    elif args.command == "debug-match":
        asyncio.run(run_debug_match(args.title, args.names, args.year))

    else:
        parser.print_help()


if __name__ == "__main__":
    main()

"""Read-only snapshot of catalog records that are already known locally.

The resolver consults this before issuing a remote fetch by id. It is built
once per batch and passed in explicitly; nothing mutates it while a batch
is running.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Union

from loguru import logger

from kpmatch.core.models import CatalogRecord, index_by_id


class KnownRecords:
    """Immutable id-indexed view over a collection of catalog records."""

    def __init__(self, records: Iterable[CatalogRecord] = ()):
        self._by_id: Dict[int, CatalogRecord] = index_by_id(records)

    def get(self, kinopoisk_id: int) -> Optional[CatalogRecord]:
        return self._by_id.get(kinopoisk_id)

    def __contains__(self, kinopoisk_id: object) -> bool:
        return kinopoisk_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[CatalogRecord]:
        return iter(self._by_id.values())

    @classmethod
    def load_json(cls, path: Union[str, Path]) -> "KnownRecords":
        """Loads a snapshot from a JSON array of catalog API objects.

        Entries without a usable id are skipped with a warning.

        Raises:
            OSError: If the file cannot be read.
            json.JSONDecodeError: If the file is not valid JSON.
        """
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)

        records = []
        for item in payload:
            try:
                records.append(CatalogRecord.from_api(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping known record {item!r}: {e}")
        logger.info(f"Loaded {len(records)} known catalog records from {path}")
        return cls(records)

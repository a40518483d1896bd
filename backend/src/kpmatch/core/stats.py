"""Statistics tracking for batch resolution."""

from dataclasses import dataclass


@dataclass
class ResolveStats:
    """Counters for one batch resolution run.

    Attributes:
        processed: Releases whose resolution finished (any outcome).
        by_embedded_id: Releases resolved from an id on their detail page.
        by_search: Releases resolved through the search fallback.
        unresolved: Releases left without a catalog record.
        errors: Releases whose resolution raised an unexpected error.

    Example:
        >>> stats = ResolveStats()
        >>> stats.processed += 1
        >>> stats.by_search += 1
        >>> stats.resolved
        1
    """

    processed: int = 0
    by_embedded_id: int = 0
    by_search: int = 0
    unresolved: int = 0
    errors: int = 0

    @property
    def resolved(self) -> int:
        return self.by_embedded_id + self.by_search

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "by_embedded_id": self.by_embedded_id,
            "by_search": self.by_search,
            "unresolved": self.unresolved,
            "errors": self.errors,
        }

    def __str__(self) -> str:
        return (
            f"ResolveStats(processed={self.processed}, "
            f"by_embedded_id={self.by_embedded_id}, by_search={self.by_search}, "
            f"unresolved={self.unresolved}, errors={self.errors})"
        )

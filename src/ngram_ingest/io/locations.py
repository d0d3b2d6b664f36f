"""Shard catalog for the Google Books n-gram export (release 20200217)."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from ngram_ingest.errors import ConfigurationError

__all__ = [
    "BASE_URL",
    "DEFAULT_SHARD_COUNTS",
    "WorkItem",
    "ShardCatalog",
]

BASE_URL = "https://storage.googleapis.com/books/ngrams/books/20200217"

# Number of shards per n-gram order, keyed by corpus language.
DEFAULT_SHARD_COUNTS: Mapping[str, Mapping[int, int]] = MappingProxyType({
    "eng": MappingProxyType({1: 24, 2: 589, 3: 6881, 4: 6668, 5: 19423}),
})


@dataclass(frozen=True, order=True)
class WorkItem:
    """One shard to ingest: (language, n-gram order, shard index)."""

    language: str
    order: int
    index: int


class ShardCatalog:
    """
    Map (language, order) to shard counts and shard URLs.

    Pure lookups over immutable catalog data. Unknown languages or orders
    raise ConfigurationError rather than falling back to a default.

    Examples:
        >>> cat = ShardCatalog()
        >>> cat.shard_count("eng", 1)
        24
        >>> cat.shard_url("eng", 1, 3)
        'https://storage.googleapis.com/books/ngrams/books/20200217/eng/1-00003-of-00024.gz'
    """

    def __init__(
        self,
        shard_counts: Optional[Mapping[str, Mapping[int, int]]] = None,
        base_url: str = BASE_URL,
    ):
        counts = DEFAULT_SHARD_COUNTS if shard_counts is None else shard_counts
        self._counts: Dict[str, Dict[int, int]] = {
            lang: dict(per_order) for lang, per_order in counts.items()
        }
        self.base_url = base_url.rstrip("/")

    @property
    def languages(self) -> List[str]:
        return sorted(self._counts)

    def shard_count(self, language: str, order: int) -> int:
        per_order = self._counts.get(language)
        if per_order is None:
            raise ConfigurationError(f"Unknown corpus language: {language!r}")
        count = per_order.get(order)
        if count is None:
            raise ConfigurationError(
                f"No shards for {order}-grams in language {language!r}"
            )
        return count

    def shard_url(self, language: str, order: int, index: int) -> str:
        total = self.shard_count(language, order)
        if not 0 <= index < total:
            raise ConfigurationError(
                f"Shard index {index} out of range 0..{total - 1} "
                f"for {language} {order}-grams"
            )
        return f"{self.base_url}/{language}/{order}-{index:05d}-of-{total:05d}.gz"

    def url_for(self, item: WorkItem) -> str:
        return self.shard_url(item.language, item.order, item.index)

    def work_items(self, language: str, order: int) -> List[WorkItem]:
        """Enumerate every shard of an order as WorkItems, in index order."""
        total = self.shard_count(language, order)
        return [WorkItem(language, order, idx) for idx in range(total)]

# ngram_ingest/config.py
"""Configuration for the n-gram ingestion pipeline."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple, Union

from ngram_ingest.errors import ConfigurationError
from ngram_ingest.io.locations import BASE_URL, ShardCatalog

__all__ = ["IngestConfig"]


@dataclass(frozen=True)
class IngestConfig:
    """Pipeline configuration, validated once at startup.

    Stage parallelism:
        - download_workers: kept small to respect the remote host's fair use
        - parse_workers: decompress/parse/resolve; defaults to cpu_count - 1
        - write_workers: one pooled store connection per writer
    """

    # I/O
    db_path: Union[str, Path]
    language: str = "eng"
    base_url: str = BASE_URL
    shard_counts: Optional[Mapping[str, Mapping[int, int]]] = None  # overrides catalog data

    # Work selection
    orders: Tuple[int, ...] = (1, 2, 3, 4, 5)
    shard_range: Optional[Tuple[int, int]] = None  # inclusive (start, end)
    random_seed: Optional[int] = None

    # Parallelism
    download_workers: int = 2
    parse_workers: Optional[int] = None
    write_workers: int = 1
    queue_capacity: int = 4  # shards buffered between stages

    # Resolver cache
    cache_capacity: int = 1_000_000

    # Writes
    write_batch_size: int = 50_000

    # Downloads
    max_retries: int = 5
    retry_delay_s: float = 1.0
    retry_backoff: float = 2.0
    retry_max_delay_s: float = 60.0
    timeout_s: float = 60.0
    spool_max_bytes: int = 64 * (1 << 20)  # 64 MiB in memory before spilling to disk

    # Pipeline control
    overwrite_db: bool = False
    compact_after_finalize: bool = True
    fail_fast: bool = True

    def catalog(self) -> ShardCatalog:
        return ShardCatalog(self.shard_counts, base_url=self.base_url)

    def resolved_parse_workers(self) -> int:
        if self.parse_workers is not None:
            return self.parse_workers
        return max(1, (os.cpu_count() or 2) - 1)

    def validate(self) -> "IngestConfig":
        """
        Check all settings; raise ConfigurationError on the first problem.

        Returns:
            self, so calls can be chained
        """
        if not str(self.db_path):
            raise ConfigurationError("db_path must not be empty")

        catalog = self.catalog()
        if self.language not in catalog.languages:
            raise ConfigurationError(
                f"language must be one of {catalog.languages}, got {self.language!r}"
            )

        if not self.orders:
            raise ConfigurationError("orders must name at least one n-gram order")
        if any(n not in (1, 2, 3, 4, 5) for n in self.orders):
            raise ConfigurationError("orders must be integers in 1..5")
        # Order n resolves against the finalized tables of every smaller order.
        if list(self.orders) != list(range(self.orders[0], self.orders[-1] + 1)):
            raise ConfigurationError("orders must be contiguous and increasing")
        for n in self.orders:
            catalog.shard_count(self.language, n)

        if self.shard_range is not None:
            start, end = self.shard_range
            if start < 0 or start > end:
                raise ConfigurationError(f"Invalid shard_range {self.shard_range}")

        for name in ("download_workers", "write_workers", "queue_capacity",
                     "cache_capacity", "write_batch_size", "max_retries",
                     "spool_max_bytes"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1")
        if self.parse_workers is not None and self.parse_workers < 1:
            raise ConfigurationError("parse_workers must be >= 1")

        if self.retry_delay_s < 0 or self.retry_backoff < 1.0:
            raise ConfigurationError("retry_delay_s must be >= 0 and retry_backoff >= 1")
        if self.retry_max_delay_s < self.retry_delay_s:
            raise ConfigurationError("retry_max_delay_s must be >= retry_delay_s")
        if self.timeout_s <= 0:
            raise ConfigurationError("timeout_s must be positive")

        return self

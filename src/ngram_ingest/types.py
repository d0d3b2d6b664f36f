"""Shared types for the staged ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, List, Optional, Tuple

from ngram_ingest.io.locations import WorkItem
from ngram_ingest.resolver import ResolvedEntry

__all__ = ["ShardStats", "DownloadedShard", "ParsedShard", "ExecutionResult"]


@dataclass
class ShardStats:
    """Counters for one shard, or summed over many."""

    lines: int = 0
    entries: int = 0
    malformed: int = 0
    dropped: int = 0  # valid entries whose prefix or word was never ingested
    rows_written: int = 0
    compressed_bytes: int = 0
    uncompressed_bytes: int = 0

    def add(self, other: "ShardStats") -> None:
        self.lines += other.lines
        self.entries += other.entries
        self.malformed += other.malformed
        self.dropped += other.dropped
        self.rows_written += other.rows_written
        self.compressed_bytes += other.compressed_bytes
        self.uncompressed_bytes += other.uncompressed_bytes


@dataclass
class DownloadedShard:
    """A shard body held in a spooled temporary file."""

    item: WorkItem
    url: str
    spool: IO[bytes]
    compressed_bytes: int

    def close(self) -> None:
        self.spool.close()


@dataclass
class ParsedShard:
    """A shard's deduplicated, resolved rows awaiting the writer."""

    item: WorkItem
    records: List[ResolvedEntry]
    stats: ShardStats


@dataclass
class ExecutionResult:
    """Outcome of running one order's shards through the pipeline."""

    completed: List[WorkItem] = field(default_factory=list)
    failed: List[Tuple[WorkItem, BaseException]] = field(default_factory=list)
    stats: ShardStats = field(default_factory=ShardStats)

    @property
    def first_error(self) -> Optional[BaseException]:
        return self.failed[0][1] if self.failed else None

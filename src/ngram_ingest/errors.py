"""Exception types raised by the ingestion pipeline."""
from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ngram_ingest.io.locations import WorkItem

__all__ = [
    "NgramIngestError",
    "ConfigurationError",
    "NetworkError",
    "MalformedLineError",
    "InvalidLine",
    "InvalidSequenceLength",
    "InvalidToken",
    "InvalidYearRecord",
    "ResolveError",
    "PersistenceError",
    "IngestError",
]


class NgramIngestError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(NgramIngestError, ValueError):
    """Invalid configuration or catalog lookup; fatal at startup."""


class NetworkError(NgramIngestError):
    """A shard could not be downloaded."""

    def __init__(self, message: str, *, url: str = "", transient: bool = True):
        super().__init__(message)
        self.url = url
        self.transient = transient


class MalformedLineError(NgramIngestError, ValueError):
    """A corpus line was rejected; the line is skipped, the shard continues."""


class InvalidLine(MalformedLineError):
    pass


class InvalidSequenceLength(MalformedLineError):
    pass


class InvalidToken(MalformedLineError):
    pass


class InvalidYearRecord(MalformedLineError):
    pass


class ResolveError(NgramIngestError):
    """A store lookup failed while resolving a word sequence."""


class PersistenceError(NgramIngestError):
    """A shard transaction failed and was rolled back."""


class IngestError(NgramIngestError):
    """One or more shards of an order could not be completed."""

    def __init__(self, message: str, failed: Optional[List["WorkItem"]] = None):
        super().__init__(message)
        self.failed = list(failed or [])

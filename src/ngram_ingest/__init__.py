"""
N-gram ingestion pipeline for the Google Books Ngram corpus.

Downloads the 1- to 5-gram shards of one language, parses and filters
their lines, resolves every n-gram to the ids of its (n-1)-gram prefix
and its final word, and stores the result in a compact SQLite database.

Main entry point:
    ingest_ngrams() - Full pipeline orchestration

Key components:
    - core: Per-order orchestration and finalization
    - coordinator: Shard enumeration, subsetting and resume handling
    - executor: Bounded download -> parse -> write stages
    - worker: Per-shard download, parse/resolve and write steps
    - resolver: Prefix/suffix id resolution with a bounded cache
    - batch_writer: Transactional, batched staging writes
    - reporter: Run header and summary display
"""

from ngram_ingest.config import IngestConfig
from ngram_ingest.core import ingest_ngrams
from ngram_ingest.logger import setup_logger

__all__ = ["ingest_ngrams", "IngestConfig", "setup_logger"]

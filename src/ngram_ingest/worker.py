"""Stage functions: download a shard, then decompress, parse and resolve it."""
from __future__ import annotations

import gzip
import logging
import threading
import zlib
from typing import Dict, Optional

import requests

from ngram_ingest.batch_writer import write_shard
from ngram_ingest.db.pool import ConnectionPool
from ngram_ingest.errors import MalformedLineError, NetworkError
from ngram_ingest.io.download import fetch_to_spool
from ngram_ingest.io.locations import ShardCatalog, WorkItem
from ngram_ingest.io.parse import EntryParser
from ngram_ingest.resolver import ResolvedEntry, SequenceResolver
from ngram_ingest.types import DownloadedShard, ParsedShard, ShardStats

logger = logging.getLogger(__name__)

__all__ = ["download_shard", "parse_and_resolve_shard", "write_parsed_shard"]

_local = threading.local()


def _thread_session() -> requests.Session:
    """One requests.Session per download thread, for connection reuse."""
    sess = getattr(_local, "session", None)
    if sess is None:
        sess = _local.session = requests.Session()
    return sess


def download_shard(
    item: WorkItem,
    catalog: ShardCatalog,
    *,
    session: Optional[requests.Session] = None,
    **fetch_kwargs,
) -> DownloadedShard:
    """
    Fetch one shard into a spooled temp file.

    Args:
        item: Shard to fetch
        catalog: Catalog used to build the shard URL
        session: Optional requests.Session (defaults to a per-thread session)
        **fetch_kwargs: Retry/timeout/spool settings for fetch_to_spool

    Returns:
        DownloadedShard; the consumer must close it
    """
    url = catalog.url_for(item)
    logger.info("%s: downloading %d-gram shard %d",
                threading.current_thread().name, item.order, item.index)
    spool, nbytes = fetch_to_spool(url, session=session or _thread_session(), **fetch_kwargs)
    return DownloadedShard(item=item, url=url, spool=spool, compressed_bytes=nbytes)


def parse_and_resolve_shard(
    shard: DownloadedShard,
    parser: EntryParser,
    resolver: SequenceResolver,
) -> ParsedShard:
    """
    Decompress, parse and resolve a downloaded shard, then release its spool.

    Malformed lines and undecodable bytes are skipped and counted. Entries
    that cannot be resolved are dropped. Sequences repeated inside the shard
    are merged by summing their scores.

    Raises:
        NetworkError: if the gzip stream is corrupt or truncated
        ResolveError: if a store lookup fails
    """
    item = shard.item
    stats = ShardStats(compressed_bytes=shard.compressed_bytes)
    merged: Dict[str, ResolvedEntry] = {}

    def _skip(exc: MalformedLineError) -> None:
        stats.malformed += 1
        logger.debug("%d-gram shard %d: skipped line: %s", item.order, item.index, exc)

    try:
        with gzip.GzipFile(fileobj=shard.spool, mode="rb") as gz:
            for entry in parser.iter_entries(_decoded_lines(gz, stats, item), on_skip=_skip):
                stats.entries += 1
                resolved = resolver.resolve_entry(entry)
                if resolved is None:
                    stats.dropped += 1
                    continue
                prev = merged.get(resolved.text)
                if prev is not None:
                    resolved = ResolvedEntry(resolved.text, prev.score + resolved.score,
                                             resolved.prefix_id, resolved.suffix_id)
                merged[resolved.text] = resolved
    except (OSError, EOFError, zlib.error) as exc:
        raise NetworkError(f"Corrupt gzip stream in {shard.url}: {exc}",
                           url=shard.url, transient=False) from exc
    finally:
        shard.close()

    logger.info(
        "Parsed %d-gram shard %d: %s lines, %s entries, %s malformed, %s dropped",
        item.order, item.index, f"{stats.lines:,}", f"{stats.entries:,}",
        f"{stats.malformed:,}", f"{stats.dropped:,}",
    )
    return ParsedShard(item=item, records=list(merged.values()), stats=stats)


def _decoded_lines(gz, stats: ShardStats, item: WorkItem):
    for raw in gz:
        stats.lines += 1
        stats.uncompressed_bytes += len(raw)
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            stats.malformed += 1
            logger.warning("%d-gram shard %d: Unicode error on line %d: %s",
                           item.order, item.index, stats.lines, exc)


def write_parsed_shard(
    shard: ParsedShard,
    pool: ConnectionPool,
    *,
    batch_size: int,
) -> ParsedShard:
    """Commit a parsed shard and its ledger marker; returns it with rows_written set."""
    shard.stats.rows_written = write_shard(
        pool, shard.item.order, shard.item.index, shard.records, batch_size=batch_size
    )
    shard.records = []
    return shard

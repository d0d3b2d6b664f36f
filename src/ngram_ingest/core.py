"""Main entry point for the n-gram ingestion pipeline."""
from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Dict, Optional, Tuple

import requests

from ngram_ingest.cache import BoundedCache
from ngram_ingest.config import IngestConfig
from ngram_ingest.coordinator import (
    enumerate_work_items,
    filter_processed_shards,
    randomize_work_order,
    select_shard_subset,
)
from ngram_ingest.db.finalize import compact_database, finalize_order
from ngram_ingest.db.metadata import get_processed_shards, is_order_finalized
from ngram_ingest.db.pool import ConnectionPool
from ngram_ingest.db.schema import init_ngram_database
from ngram_ingest.errors import IngestError
from ngram_ingest.executor import process_shards
from ngram_ingest.io.locations import ShardCatalog
from ngram_ingest.io.parse import EntryParser
from ngram_ingest.reporter import (
    print_final_summary,
    print_order_header,
    print_pipeline_header,
)
from ngram_ingest.resolver import SequenceResolver
from ngram_ingest.types import ExecutionResult
from ngram_ingest.utils.cleanup import safe_db_cleanup
from ngram_ingest.worker import download_shard, parse_and_resolve_shard, write_parsed_shard

logger = logging.getLogger(__name__)

__all__ = ["ingest_ngrams"]

try:
    import setproctitle as _setproctitle
except ImportError:
    _setproctitle = None


def ingest_ngrams(
        config: IngestConfig,
        *,
        session: Optional[requests.Session] = None,
) -> Dict[int, ExecutionResult]:
    """
    Download, parse, resolve and store every configured n-gram order.

    Orders run one after another: all shards of order n are ingested and
    the order is finalized (ranked, indexed) before order n+1 starts,
    because n+1 resolves its prefixes against the finalized n-gram table.

    Resume is automatic: shards found in the completion ledger are skipped
    and finalized orders are left as they are.

    Args:
        config: Pipeline configuration (validated here)
        session: Optional requests.Session shared by all download workers

    Returns:
        ExecutionResult per order that ran

    Raises:
        ConfigurationError: If the configuration is invalid
        IngestError: If any shard of an order could not be completed
    """
    config.validate()
    logger.info("Starting N-gram ingestion pipeline")

    if _setproctitle is not None:
        try:
            _setproctitle.setproctitle("ngi:main")
        except Exception:
            pass

    start_time = datetime.now()
    db_path = Path(config.db_path).expanduser()

    if config.overwrite_db and db_path.exists():
        logger.info("Removing existing database for fresh start")
        if not safe_db_cleanup(db_path):
            raise RuntimeError(
                f"Failed to remove existing database at {db_path}. "
                "Close open handles or remove it manually."
            )

    init_ngram_database(db_path)
    logger.info("Database path: %s", db_path)

    catalog = config.catalog()
    parse_workers = config.resolved_parse_workers()
    cache: BoundedCache[Optional[int]] = BoundedCache(config.cache_capacity)
    results: Dict[int, ExecutionResult] = {}

    print_pipeline_header(config, start_time)

    # Writers get one pooled connection each; resolver reads use their own.
    write_pool = ConnectionPool.for_sqlite(db_path, config.write_workers)
    read_pool = ConnectionPool.for_sqlite(db_path, parse_workers)
    try:
        resolver = SequenceResolver(read_pool, cache)
        for order in config.orders:
            result, finalized = _ingest_order(
                order, config, catalog, write_pool, resolver, session=session
            )
            results[order] = result
            if not finalized:
                logger.warning("Stopping before %d-grams: %d-grams are incomplete",
                               order + 1, order)
                break
    finally:
        read_pool.close()
        write_pool.close()
        print_final_summary(start_time, datetime.now(), results, cache.get_stats())

    return results


def _ingest_order(
        order: int,
        config: IngestConfig,
        catalog: ShardCatalog,
        write_pool: ConnectionPool,
        resolver: SequenceResolver,
        *,
        session: Optional[requests.Session],
) -> Tuple[ExecutionResult, bool]:
    """
    Run Enumerate -> Filter -> Download/Parse/Write -> Finalize for one order.

    Returns:
        (result, finalized); finalized is False when shards are still
        outstanding (e.g. a shard_range subset), in which case higher
        orders must not start.
    """
    with write_pool.connection() as conn:
        if is_order_finalized(conn, order):
            logger.info("%d-grams already finalized; skipping", order)
            return ExecutionResult(), True
        if order > 1 and not is_order_finalized(conn, order - 1):
            raise IngestError(
                f"Cannot ingest {order}-grams: {order - 1}-grams are not finalized"
            )

        all_items = enumerate_work_items(catalog, config.language, order)
        items, _, _ = select_shard_subset(all_items, config.shard_range)
        items, skipped = filter_processed_shards(items, conn)

    if config.random_seed is not None:
        randomize_work_order(items, config.random_seed)

    print_order_header(order, len(all_items), len(items), skipped)

    parser = EntryParser(order)
    result = process_shards(
        items,
        download=partial(
            download_shard,
            catalog=catalog,
            session=session,
            max_retries=config.max_retries,
            delay_seconds=config.retry_delay_s,
            backoff=config.retry_backoff,
            max_delay_seconds=config.retry_max_delay_s,
            timeout=config.timeout_s,
            spool_max_bytes=config.spool_max_bytes,
        ),
        transform=partial(parse_and_resolve_shard, parser=parser, resolver=resolver),
        write=partial(write_parsed_shard, pool=write_pool, batch_size=config.write_batch_size),
        download_workers=config.download_workers,
        parse_workers=config.resolved_parse_workers(),
        write_workers=config.write_workers,
        queue_capacity=config.queue_capacity,
        fail_fast=config.fail_fast,
        desc=f"{order}-gram shards:",
    )

    if result.failed:
        failed_items = [item for item, _ in result.failed]
        raise IngestError(
            f"{len(failed_items)} of {len(items)} {order}-gram shards failed; "
            "completed shards are kept and the next run resumes from them",
            failed=failed_items,
        ) from result.first_error

    with write_pool.connection() as conn:
        outstanding = len(all_items) - len(get_processed_shards(conn, order))
        if outstanding:
            logger.info("%d-grams: %d shards outstanding; not finalizing",
                        order, outstanding)
            return result, False

        finalize_order(conn, order)
        if config.compact_after_finalize:
            compact_database(conn)

    return result, True

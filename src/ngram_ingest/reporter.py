"""Run header and summary printing for the ingestion pipeline."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping, Optional

from ngram_ingest.config import IngestConfig
from ngram_ingest.types import ExecutionResult
from ngram_ingest.utils.display import format_banner, format_bytes, format_count

__all__ = ["print_pipeline_header", "print_order_header", "print_final_summary"]


def print_pipeline_header(config: IngestConfig, start_time: datetime) -> None:
    """Print the run configuration once, before the first order starts."""
    print(format_banner("N-GRAM INGESTION PIPELINE", style="━"))
    print(f"Start Time: {start_time:%Y-%m-%d %H:%M:%S}")
    print()
    print(format_banner("Configuration"))
    print(f"Shard base URL:       {config.base_url}")
    print(f"DB path:              {config.db_path}")
    print(f"Language:             {config.language}")
    print(f"Orders:               {', '.join(str(n) for n in config.orders)}")
    if config.shard_range is not None:
        print(f"Shard range:          {config.shard_range[0]} to {config.shard_range[1]}")
    print(f"Download workers:     {config.download_workers}")
    print(f"Parse workers:        {config.resolved_parse_workers()}")
    print(f"Write workers:        {config.write_workers}")
    print(f"Queue capacity:       {config.queue_capacity}")
    print(f"Cache capacity:       {format_count(config.cache_capacity)}")
    print(f"Batch size:           {format_count(config.write_batch_size)}")
    print(f"Overwrite DB:         {config.overwrite_db}")
    print()


def print_order_header(
    order: int,
    total_shards: int,
    shards_to_get: int,
    shards_to_skip: int,
) -> None:
    print(format_banner(f"{order}-grams"))
    print(f"Total shards:         {total_shards}")
    print(f"Shards to get:        {shards_to_get}")
    print(f"Skipping:             {shards_to_skip}")


def print_final_summary(
    start_time: datetime,
    end_time: datetime,
    results: Mapping[int, ExecutionResult],
    cache_stats: Optional[tuple[int, int, int]] = None,
) -> None:
    """
    Print final pipeline statistics.

    Args:
        start_time: Pipeline start timestamp
        end_time: Pipeline end timestamp
        results: ExecutionResult per n-gram order that ran
        cache_stats: Optional (hits, misses, evictions) from the resolver cache
    """
    total_runtime = end_time - start_time
    ok = sum(len(r.completed) for r in results.values())
    bad = sum(len(r.failed) for r in results.values())

    time_per_shard = (total_runtime / ok) if ok else timedelta(0)
    sph = (3600 / time_per_shard.total_seconds()) if ok and time_per_shard.total_seconds() > 0 else 0.0

    print()
    print(format_banner("Final Summary"))
    for order, res in sorted(results.items()):
        s = res.stats
        print(
            f"{order}-grams: {len(res.completed)} shards, {len(res.failed)} failed, "
            f"{format_count(s.rows_written)} rows, {format_count(s.malformed)} malformed, "
            f"{format_count(s.dropped)} dropped, {format_bytes(s.compressed_bytes)} downloaded"
        )
    print(f"Fully processed shards:      {ok}")
    print(f"Failed shards:               {bad}")
    if cache_stats is not None:
        hits, misses, evictions = cache_stats
        print(f"Resolver cache:              {format_count(hits)} hits, "
              f"{format_count(misses)} misses, {format_count(evictions)} evictions")
    print()
    print(f"End Time: {end_time}")
    print(f"Total Runtime: {total_runtime}")
    print(f"Time per shard: {time_per_shard}")
    print(f"Shards per hour: {sph:.1f}")

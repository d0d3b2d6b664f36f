"""Coordination logic for shard enumeration, subsetting and resume handling."""
from __future__ import annotations

import logging
import random
from typing import Any, List, Optional, Tuple

from ngram_ingest.db.metadata import get_processed_shards
from ngram_ingest.io.locations import ShardCatalog, WorkItem

logger = logging.getLogger(__name__)

__all__ = [
    "enumerate_work_items",
    "select_shard_subset",
    "filter_processed_shards",
    "randomize_work_order",
]


def enumerate_work_items(
    catalog: ShardCatalog,
    language: str,
    order: int,
) -> List[WorkItem]:
    """
    Enumerate every shard of an n-gram order.

    Args:
        catalog: Shard catalog
        language: Corpus language (e.g., "eng")
        order: N-gram order (1-5)

    Returns:
        WorkItems for shard indexes 0..count-1

    Raises:
        ConfigurationError: If the catalog has no shards for (language, order)
    """
    items = catalog.work_items(language, order)
    logger.info("Enumerated %d shards of %s %d-grams", len(items), language, order)
    return items


def select_shard_subset(
    items: List[WorkItem],
    shard_range: Optional[Tuple[int, int]] = None,
) -> Tuple[List[WorkItem], int, int]:
    """
    Select subset of shards based on an inclusive index range.

    Args:
        items: All shards of an order, in index order
        shard_range: Optional (start_idx, end_idx) tuple. Use None for all shards.

    Returns:
        Tuple of (selected_items, start_idx, end_idx)

    Raises:
        ValueError: If shard_range is invalid
    """
    if shard_range is None:
        return list(items), 0, len(items) - 1

    start_idx, end_idx = shard_range
    if start_idx < 0 or start_idx > end_idx or start_idx >= len(items):
        raise ValueError(
            f"Invalid shard range {shard_range}. Available: 0..{len(items) - 1}"
        )
    # Ranges past the end are clipped so one range can serve every order.
    end_idx = min(end_idx, len(items) - 1)

    selected = items[start_idx: end_idx + 1]
    logger.info("Selected shards %d to %d (%d total)", start_idx, end_idx, len(selected))
    return selected, start_idx, end_idx


def filter_processed_shards(
    items: List[WorkItem],
    conn: Any,
) -> Tuple[List[WorkItem], int]:
    """
    Drop shards already recorded in the completion ledger.

    Args:
        items: Shards to check (all of one order)
        conn: Store connection

    Returns:
        Tuple of (unprocessed_items, num_skipped)
    """
    done_by_order = {}
    to_keep = []
    for item in items:
        if item.order not in done_by_order:
            done_by_order[item.order] = get_processed_shards(conn, item.order)
        if item.index not in done_by_order[item.order]:
            to_keep.append(item)

    num_skipped = len(items) - len(to_keep)
    if num_skipped:
        logger.info("Resume mode: skipping %d processed shards", num_skipped)

    return to_keep, num_skipped


def randomize_work_order(items: List[WorkItem], seed: int) -> None:
    """Shuffle items in place with a reproducible seed."""
    rng = random.Random(seed)
    rng.shuffle(items)
    logger.info("Randomized shard order with seed %d", seed)

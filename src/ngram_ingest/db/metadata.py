# ngram_ingest/db/metadata.py
"""Shard completion ledger and order finalization markers."""
from __future__ import annotations

import logging
from typing import Any, Set

logger = logging.getLogger(__name__)

__all__ = [
    "is_shard_processed",
    "mark_shard_as_processed",
    "get_processed_shards",
    "is_order_finalized",
    "mark_order_finalized",
]


def is_shard_processed(conn: Any, order: int, index: int) -> bool:
    """Point lookup of a shard marker. Lookup errors count as 'not processed'."""
    try:
        row = conn.execute(
            "SELECT 1 FROM fetched_shards WHERE n = ? AND idx = ?",
            (order, index),
        ).fetchone()
        return row is not None
    except Exception as exc:
        logger.warning("Processed check failed for %d-gram shard %d: %s",
                       order, index, exc)
        return False


def mark_shard_as_processed(conn: Any, order: int, index: int) -> None:
    """
    Insert the marker for a shard.

    Must run inside the transaction that writes the shard's rows; errors
    propagate so the caller can roll the whole shard back.
    """
    conn.execute(
        "INSERT OR IGNORE INTO fetched_shards (n, idx) VALUES (?, ?)",
        (order, index),
    )
    logger.debug("Marked processed: %d-gram shard %d", order, index)


def get_processed_shards(conn: Any, order: int) -> Set[int]:
    """Return the indexes of every shard of an order already ingested."""
    rows = conn.execute(
        "SELECT idx FROM fetched_shards WHERE n = ?", (order,)
    ).fetchall()
    return {int(r[0]) for r in rows}


def is_order_finalized(conn: Any, order: int) -> bool:
    row = conn.execute(
        "SELECT 1 FROM finalized_orders WHERE n = ?", (order,)
    ).fetchone()
    return row is not None


def mark_order_finalized(conn: Any, order: int) -> None:
    conn.execute("INSERT OR IGNORE INTO finalized_orders (n) VALUES (?)", (order,))

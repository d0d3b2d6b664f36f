"""Post-ingestion ranking, indexing and compaction of an n-gram order."""
from __future__ import annotations

import logging
import sqlite3
import time
from typing import Any

from ngram_ingest.db.metadata import is_order_finalized, mark_order_finalized
from ngram_ingest.db.schema import ngram_table, staged_table
from ngram_ingest.errors import PersistenceError

logger = logging.getLogger(__name__)

__all__ = ["finalize_order", "compact_database"]


def _rank_sql(order: int) -> str:
    # Duplicate sequences across shards collapse into one row with summed
    # score; ids are dense ranks by score desc, then sequence text asc.
    if order == 1:
        return f"""
            INSERT INTO {ngram_table(1)} (id, word, score)
            SELECT ROW_NUMBER() OVER (ORDER BY total DESC, ngram ASC), ngram, total
            FROM (
                SELECT ngram, SUM(score) AS total
                FROM {staged_table(1)}
                GROUP BY ngram
            )
        """
    return f"""
        INSERT INTO {ngram_table(order)} (id, prefix_id, suffix_id, score)
        SELECT ROW_NUMBER() OVER (ORDER BY total DESC, ngram ASC),
               prefix_id, suffix_id, total
        FROM (
            SELECT ngram, MIN(prefix_id) AS prefix_id, MIN(suffix_id) AS suffix_id,
                   SUM(score) AS total
            FROM {staged_table(order)}
            GROUP BY ngram
        )
    """


def _index_sql(order: int) -> list[str]:
    table = ngram_table(order)
    lookup_cols = "word" if order == 1 else "prefix_id, suffix_id"
    return [
        f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{table}_lookup ON {table} ({lookup_cols})",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_score ON {table} (score DESC)",
    ]


def finalize_order(conn: Any, order: int) -> int:
    """
    Build the final table for an order from its staged rows.

    Ranks and inserts the deduplicated rows, creates lookup and score
    indexes, clears the staging table and records the order as finalized,
    all in one transaction. Already-finalized orders are left untouched.

    Args:
        conn: Connection in autocommit mode
        order: N-gram order (1-5)

    Returns:
        Number of rows in the final table (0 if already finalized)

    Raises:
        PersistenceError: if the transaction fails (it is rolled back)
    """
    if is_order_finalized(conn, order):
        logger.info("%d-grams already finalized; skipping", order)
        return 0

    start = time.time()
    logger.info("Finalizing %d-grams", order)
    try:
        conn.execute("BEGIN IMMEDIATE")
        conn.execute(f"DELETE FROM {ngram_table(order)}")
        conn.execute(_rank_sql(order))
        for stmt in _index_sql(order):
            conn.execute(stmt)
        conn.execute(f"DELETE FROM {staged_table(order)}")
        mark_order_finalized(conn, order)
        conn.execute("COMMIT")
    except sqlite3.Error as exc:
        if getattr(conn, "in_transaction", True):
            conn.execute("ROLLBACK")
        raise PersistenceError(f"Failed to finalize {order}-grams: {exc}") from exc

    rows = conn.execute(f"SELECT COUNT(*) FROM {ngram_table(order)}").fetchone()[0]
    logger.info("Finalized %d-grams: %s rows in %.1fs", order, f"{rows:,}", time.time() - start)
    return int(rows)


def compact_database(conn: Any) -> None:
    """Reclaim space freed by cleared staging tables and refresh statistics."""
    start = time.time()
    try:
        conn.execute("VACUUM")
        conn.execute("ANALYZE")
    except sqlite3.Error as exc:
        # The data is intact; only space reclamation failed.
        logger.error("Compaction failed: %s", exc)
        return
    logger.info("Compaction completed in %.1fs", time.time() - start)

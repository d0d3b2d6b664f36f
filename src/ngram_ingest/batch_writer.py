"""Transactional batch writer for one shard's staged rows."""
from __future__ import annotations

import logging
import random
import sqlite3
import time
from typing import Any, List, Sequence

from ngram_ingest.db.metadata import mark_shard_as_processed
from ngram_ingest.db.pool import ConnectionPool
from ngram_ingest.db.write import DEFAULT_WRITE_BATCH_SIZE, write_batch_to_db
from ngram_ingest.errors import PersistenceError
from ngram_ingest.resolver import ResolvedEntry

logger = logging.getLogger(__name__)

__all__ = ["BatchWriter", "write_shard"]


class BatchWriter:
    """
    Buffers a shard's rows and flushes them inside a single transaction.

    The shard's completion marker is written in the same transaction just
    before COMMIT, so either all of the shard's rows and its marker become
    visible, or none do.

    Usage:
        with BatchWriter(conn, order=2, index=3) as writer:
            for rec in records:
                writer.add(rec)
    """

    def __init__(
        self,
        conn: Any,
        order: int,
        index: int,
        max_entries: int = DEFAULT_WRITE_BATCH_SIZE,
    ):
        """
        Initialize batch writer.

        Args:
            conn: Connection in autocommit mode, owned by the calling worker
            order: N-gram order of the shard
            index: Shard index
            max_entries: Rows buffered before an automatic flush
        """
        self.conn = conn
        self.order = order
        self.index = index
        self.max_entries = max_entries

        self.pending: List[ResolvedEntry] = []
        self.rows_written = 0
        self.write_batches = 0
        self._in_txn = False

    def begin(self) -> None:
        self.conn.execute("BEGIN IMMEDIATE")
        self._in_txn = True

    def add(self, entry: ResolvedEntry) -> None:
        self.pending.append(entry)
        if len(self.pending) >= self.max_entries:
            self.flush()

    def flush(self) -> None:
        """Send buffered rows to the store (still uncommitted)."""
        if not self.pending:
            return
        self.rows_written += write_batch_to_db(self.conn, self.order, self.index, self.pending)
        self.write_batches += 1
        self.pending.clear()

    def commit(self) -> None:
        """Flush, mark the shard complete and commit."""
        self.flush()
        mark_shard_as_processed(self.conn, self.order, self.index)
        self.conn.execute("COMMIT")
        self._in_txn = False
        logger.info("Committed %d-gram shard %d: %s rows in %d batches",
                    self.order, self.index, f"{self.rows_written:,}", self.write_batches)

    def rollback(self) -> None:
        self.pending.clear()
        if self._in_txn:
            self._in_txn = False
            # SQLite may already have rolled back on its own after some errors.
            if getattr(self.conn, "in_transaction", True):
                self.conn.execute("ROLLBACK")
            logger.warning("Rolled back %d-gram shard %d", self.order, self.index)

    def __enter__(self) -> "BatchWriter":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self.commit()
            except BaseException:
                self.rollback()
                raise
        else:
            self.rollback()
        return False


def write_shard(
    pool: ConnectionPool,
    order: int,
    index: int,
    entries: Sequence[ResolvedEntry],
    *,
    batch_size: int = DEFAULT_WRITE_BATCH_SIZE,
    max_retries: int = 5,
) -> int:
    """
    Stage all rows of a shard and mark it complete, atomically.

    The whole transaction is retried with backoff while the database is
    locked by another writer. Any other store error rolls the shard back.

    Returns:
        Number of rows inserted

    Raises:
        PersistenceError: if the shard could not be committed
    """
    for attempt in range(max_retries):
        with pool.connection() as conn:
            writer = BatchWriter(conn, order, index, max_entries=batch_size)
            try:
                with writer:
                    for entry in entries:
                        writer.add(entry)
                return writer.rows_written
            except sqlite3.OperationalError as exc:
                if "locked" in str(exc) and attempt < max_retries - 1:
                    # Exponential backoff with jitter
                    base_delay = 0.1 * (2 ** attempt)
                    delay = base_delay + random.uniform(0, base_delay * 0.5)
                    logger.warning("Database locked writing %d-gram shard %d; "
                                   "retrying in %.2fs", order, index, delay)
                    time.sleep(delay)
                    continue
                raise PersistenceError(
                    f"Failed to write {order}-gram shard {index}: {exc}"
                ) from exc
            except sqlite3.Error as exc:
                raise PersistenceError(
                    f"Failed to write {order}-gram shard {index}: {exc}"
                ) from exc

    raise PersistenceError(f"Failed to write {order}-gram shard {index}: no attempts made")

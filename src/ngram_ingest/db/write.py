from __future__ import annotations

import logging
from typing import Any, Sequence, TYPE_CHECKING

from ngram_ingest.db.schema import staged_table

if TYPE_CHECKING:
    from ngram_ingest.resolver import ResolvedEntry

logger = logging.getLogger(__name__)

# Tunable defaults
DEFAULT_WRITE_BATCH_SIZE = 50_000  # rows per executemany

__all__ = ["DEFAULT_WRITE_BATCH_SIZE", "write_batch_to_db"]


def write_batch_to_db(
    conn: Any,
    order: int,
    index: int,
    pending: Sequence["ResolvedEntry"],
) -> int:
    """
    Stage one batch of a shard's rows with a bulk insert-or-ignore.

    Runs inside the caller's open transaction; nothing is committed here.
    Rows already staged for this shard are ignored, which makes re-running
    a shard after a crash harmless.

    Returns:
        Number of rows actually inserted
    """
    if not pending:
        return 0

    table = staged_table(order)
    if order == 1:
        sql = f"INSERT OR IGNORE INTO {table} (idx, ngram, score) VALUES (?, ?, ?)"
        params = [(index, e.text, e.score) for e in pending]
    else:
        sql = (
            f"INSERT OR IGNORE INTO {table} "
            "(idx, ngram, prefix_id, suffix_id, score) VALUES (?, ?, ?, ?, ?)"
        )
        params = [(index, e.text, e.prefix_id, e.suffix_id, e.score) for e in pending]

    cur = conn.executemany(sql, params)
    inserted = cur.rowcount if cur.rowcount is not None and cur.rowcount >= 0 else len(params)
    logger.debug("Staged %s of %s rows for %d-gram shard %d",
                 f"{inserted:,}", f"{len(params):,}", order, index)
    return inserted

"""Resolve word sequences to the integer ids of finalized n-gram tables."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional, Sequence

from ngram_ingest.cache import MISSING, BoundedCache
from ngram_ingest.db.pool import ConnectionPool
from ngram_ingest.db.schema import ngram_table
from ngram_ingest.errors import ResolveError
from ngram_ingest.io.parse import Entry

logger = logging.getLogger(__name__)

__all__ = ["ResolvedEntry", "SequenceResolver"]


@dataclass(frozen=True)
class ResolvedEntry:
    """An entry ready for staging; ids are None for order 1."""
    text: str
    score: int
    prefix_id: Optional[int] = None
    suffix_id: Optional[int] = None


class SequenceResolver:
    """
    Look up sequence ids with a shared bounded cache in front of the store.

    A sequence of k tokens is the pair (first k-1 tokens, last token); both
    halves are resolved (and cached) independently before the pair is
    looked up in the k-gram table. Absent sequences are cached as None.

    Only finalized tables are queried, and those do not change for the
    rest of a run, so cached ids never go stale.
    """

    def __init__(self, pool: ConnectionPool, cache: BoundedCache[Optional[int]]):
        self.pool = pool
        self.cache = cache

    def resolve(self, tokens: Sequence[str]) -> Optional[int]:
        """
        Return the id of a token sequence, or None if it was never ingested.

        Raises:
            ResolveError: if a store lookup fails
        """
        if not 1 <= len(tokens) <= 5:
            raise ValueError("sequences must have 1..5 tokens")

        key = " ".join(tokens)
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached

        if len(tokens) == 1:
            found = self._lookup(
                f"SELECT id FROM {ngram_table(1)} WHERE word = ?", (tokens[0],)
            )
        else:
            prefix_id = self.resolve(tokens[:-1])
            suffix_id = self.resolve(tokens[-1:])
            if prefix_id is None or suffix_id is None:
                found = None
            else:
                found = self._lookup(
                    f"SELECT id FROM {ngram_table(len(tokens))} "
                    "WHERE prefix_id = ? AND suffix_id = ?",
                    (prefix_id, suffix_id),
                )

        self.cache.put(key, found)
        return found

    def resolve_entry(self, entry: Entry) -> Optional[ResolvedEntry]:
        """
        Prepare an entry for staging, or return None to drop it.

        Order-1 entries need no lookup. Higher orders are dropped when
        their prefix or final word was never ingested.
        """
        if len(entry.tokens) == 1:
            return ResolvedEntry(entry.text, entry.score)

        prefix_id = self.resolve(entry.tokens[:-1])
        if prefix_id is None:
            return None
        suffix_id = self.resolve(entry.tokens[-1:])
        if suffix_id is None:
            return None
        return ResolvedEntry(entry.text, entry.score, prefix_id, suffix_id)

    def _lookup(self, sql: str, params: tuple) -> Optional[int]:
        try:
            with self.pool.connection() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise ResolveError(f"Lookup failed for {params!r}: {exc}") from exc

        if not rows:
            return None
        if len(rows) > 1:
            raise ResolveError(f"Duplicated key {params!r}")
        return int(rows[0][0])

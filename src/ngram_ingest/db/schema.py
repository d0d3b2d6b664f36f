"""Database schema for n-gram tables, staging tables and the shard ledger."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Union

__all__ = [
    "ORDER_NAMES",
    "ngram_table",
    "staged_table",
    "init_ngram_database",
]

ORDER_NAMES = {1: "one", 2: "two", 3: "three", 4: "four", 5: "five"}


def ngram_table(order: int) -> str:
    """Final table for an order, e.g. 'two_grams'."""
    return f"{ORDER_NAMES[order]}_grams"


def staged_table(order: int) -> str:
    """Per-shard staging table for an order, e.g. 'staged_two_grams'."""
    return f"staged_{ORDER_NAMES[order]}_grams"


def _schema_sql() -> str:
    stmts = [
        """
        CREATE TABLE IF NOT EXISTS fetched_shards (
            n INTEGER NOT NULL,
            idx INTEGER NOT NULL,
            PRIMARY KEY (n, idx)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS finalized_orders (
            n INTEGER PRIMARY KEY
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS {staged_table(1)} (
            idx INTEGER NOT NULL,
            ngram TEXT NOT NULL,
            score INTEGER NOT NULL CHECK (score >= 0),
            PRIMARY KEY (idx, ngram)
        )
        """,
        # Ids are assigned by the finalizer as dense popularity ranks.
        f"""
        CREATE TABLE IF NOT EXISTS {ngram_table(1)} (
            id INTEGER PRIMARY KEY,
            word TEXT NOT NULL,
            score INTEGER NOT NULL CHECK (score >= 0)
        )
        """,
    ]
    for n in range(2, 6):
        stmts.append(f"""
        CREATE TABLE IF NOT EXISTS {staged_table(n)} (
            idx INTEGER NOT NULL,
            ngram TEXT NOT NULL,
            prefix_id INTEGER NOT NULL,
            suffix_id INTEGER NOT NULL,
            score INTEGER NOT NULL CHECK (score >= 0),
            PRIMARY KEY (idx, ngram)
        )
        """)
        stmts.append(f"""
        CREATE TABLE IF NOT EXISTS {ngram_table(n)} (
            id INTEGER PRIMARY KEY,
            prefix_id INTEGER NOT NULL REFERENCES {ngram_table(n - 1)}(id),
            suffix_id INTEGER NOT NULL REFERENCES {ngram_table(1)}(id),
            score INTEGER NOT NULL CHECK (score >= 0)
        )
        """)
    return ";\n".join(s.strip() for s in stmts) + ";\n"


def init_ngram_database(db_path: Union[str, Path]) -> None:
    """
    Create all tables if they don't exist and switch the file to WAL mode.

    Secondary indexes are not created here; the finalizer adds them once an
    order's bulk load is complete.

    Args:
        db_path: Path to SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=30.0)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_schema_sql())
        conn.commit()
    finally:
        conn.close()

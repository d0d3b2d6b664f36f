"""Fixed-size pool of store connections shared by pipeline workers."""
from __future__ import annotations

import logging
import queue
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List, Union

logger = logging.getLogger(__name__)

__all__ = ["ConnectionPool", "sqlite_connector"]


def sqlite_connector(
    db_path: Union[str, Path],
    *,
    timeout: float = 30.0,
) -> Callable[[], sqlite3.Connection]:
    """
    Return a factory for SQLite connections usable from any worker thread.

    Connections run in autocommit mode (isolation_level=None) so callers
    open transactions explicitly with BEGIN.
    """
    path = str(Path(db_path).expanduser())

    def connect() -> sqlite3.Connection:
        conn = sqlite3.connect(
            path,
            timeout=timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=OFF")
        return conn

    return connect


class ConnectionPool:
    """
    Hands out at most `size` DB-API connections at a time.

    A connection is owned exclusively by the worker holding it; checkout
    blocks while all connections are in use.
    """

    def __init__(self, connect: Callable[[], Any], size: int):
        if size < 1:
            raise ValueError("size must be >= 1")
        self.size = size
        self._idle: "queue.Queue[Any]" = queue.Queue(maxsize=size)
        self._all: List[Any] = []
        for _ in range(size):
            conn = connect()
            self._all.append(conn)
            self._idle.put(conn)
        logger.debug("Opened connection pool with %d connections", size)

    @classmethod
    def for_sqlite(cls, db_path: Union[str, Path], size: int, **kwargs) -> "ConnectionPool":
        return cls(sqlite_connector(db_path, **kwargs), size)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        conn = self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put(conn)

    def close(self) -> None:
        for conn in self._all:
            try:
                conn.close()
            except Exception as exc:
                logger.warning("Error closing connection: %s", exc)
        self._all.clear()

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

# tests/db/test_pool.py
import threading

import pytest

from ngram_ingest.db.pool import ConnectionPool


class _Conn:
    def __init__(self, n):
        self.n = n
        self.closed = False

    def close(self):
        self.closed = True


def _factory():
    made = []

    def connect():
        conn = _Conn(len(made))
        made.append(conn)
        return conn

    return connect, made


def test_opens_size_connections_and_closes_them():
    connect, made = _factory()
    with ConnectionPool(connect, 3) as pool:
        assert pool.size == 3
        assert len(made) == 3
    assert all(c.closed for c in made)


def test_connection_is_returned_after_use():
    connect, made = _factory()
    pool = ConnectionPool(connect, 1)
    with pool.connection() as a:
        pass
    with pool.connection() as b:
        assert b is a
    pool.close()


def test_checkout_blocks_while_exhausted():
    connect, _ = _factory()
    pool = ConnectionPool(connect, 1)
    got = threading.Event()

    def other():
        with pool.connection():
            got.set()

    with pool.connection():
        t = threading.Thread(target=other)
        t.start()
        assert not got.wait(0.2)
    t.join(timeout=5)
    assert got.is_set()
    pool.close()


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        ConnectionPool(lambda: _Conn(0), 0)


def test_sqlite_pool_is_autocommit(tmp_path):
    with ConnectionPool.for_sqlite(tmp_path / "x.sqlite", 2) as pool:
        with pool.connection() as conn:
            assert conn.isolation_level is None
            conn.execute("CREATE TABLE t (x INTEGER)")
            conn.execute("INSERT INTO t VALUES (1)")
        with pool.connection() as conn:
            assert conn.execute("SELECT x FROM t").fetchall() == [(1,)]

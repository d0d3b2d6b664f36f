# tests/pipeline/test_worker.py
from __future__ import annotations

import gzip
import io

import pytest

from ngram_ingest.db.metadata import get_processed_shards
from ngram_ingest.db.pool import ConnectionPool
from ngram_ingest.db.schema import init_ngram_database
from ngram_ingest.errors import NetworkError
from ngram_ingest.io.locations import ShardCatalog, WorkItem
from ngram_ingest.io.parse import EntryParser
from ngram_ingest.resolver import ResolvedEntry
from ngram_ingest.types import DownloadedShard, ParsedShard, ShardStats
from ngram_ingest.worker import download_shard, parse_and_resolve_shard, write_parsed_shard


# --- helpers -----------------------------------------------------------------


def _gz_bytes(lines: list[bytes]) -> bytes:
    buf = io.BytesIO()
    with gzip.GzipFile(fileobj=buf, mode="wb") as gz:
        gz.write(b"\n".join(lines))
    return buf.getvalue()


def _shard(payload: bytes, order: int = 1, index: int = 0) -> DownloadedShard:
    return DownloadedShard(item=WorkItem("eng", order, index), url="https://ex/shard.gz",
                           spool=io.BytesIO(payload), compressed_bytes=len(payload))


class _PassResolver:
    """Resolves every entry; higher orders get fixed ids."""

    def __init__(self, unknown=()):
        self.unknown = set(unknown)

    def resolve_entry(self, entry):
        if self.unknown.intersection(entry.tokens):
            return None
        if len(entry.tokens) == 1:
            return ResolvedEntry(entry.text, entry.score)
        return ResolvedEntry(entry.text, entry.score, 1, 2)


# --- download_shard ----------------------------------------------------------


def test_download_shard_uses_catalog_url():
    seen = []

    class _Resp:
        headers = {}

        def raise_for_status(self):
            return None

        def iter_content(self, chunk_size):
            yield b"gzdata"

        def close(self):
            pass

    class _Sess:
        def get(self, url, *, stream, timeout):
            seen.append(url)
            return _Resp()

    catalog = ShardCatalog({"eng": {2: 3}}, base_url="https://ex")
    shard = download_shard(WorkItem("eng", 2, 1), catalog, session=_Sess(), timeout=5.0)
    try:
        assert seen == ["https://ex/eng/2-00001-of-00003.gz"]
        assert shard.url == seen[0]
        assert shard.compressed_bytes == 6
        assert shard.spool.read() == b"gzdata"
    finally:
        shard.close()


# --- parse_and_resolve_shard -------------------------------------------------


def test_parses_counts_and_closes_spool():
    payload = _gz_bytes([
        b"alpha\t2000,10,2\t2001,20,4",
        b"beta_VERB\t1999,3,5",
        b"gamma delta\t2001,1,1",
        b"delta\t2001,1,1",
    ])
    shard = _shard(payload)

    parsed = parse_and_resolve_shard(shard, EntryParser(1), _PassResolver())

    assert sorted((r.text, r.score) for r in parsed.records) == [("alpha", 30), ("delta", 1)]
    assert parsed.stats.lines == 4
    assert parsed.stats.entries == 2
    assert parsed.stats.malformed == 2
    assert parsed.stats.compressed_bytes == len(payload)
    assert parsed.stats.uncompressed_bytes > 0
    assert shard.spool.closed


def test_duplicate_sequences_in_shard_are_merged():
    payload = _gz_bytes([b"cat\t2000,1,1", b"cat\t2001,4,1"])
    parsed = parse_and_resolve_shard(_shard(payload), EntryParser(1), _PassResolver())
    assert [(r.text, r.score) for r in parsed.records] == [("cat", 5)]


def test_unresolvable_entries_are_dropped():
    payload = _gz_bytes([b"the cat\t2000,1,1", b"the dog\t2000,2,1"])
    parsed = parse_and_resolve_shard(_shard(payload, order=2), EntryParser(2),
                                     _PassResolver(unknown={"dog"}))
    assert [r.text for r in parsed.records] == ["the cat"]
    assert parsed.records[0].prefix_id == 1
    assert parsed.stats.dropped == 1


def test_unicode_error_is_logged_and_processing_continues(caplog):
    caplog.set_level("WARNING")
    payload = _gz_bytes([b"x\t1990,1,1", b"\xff\xfe", b"y\t1991,2,2"])

    parsed = parse_and_resolve_shard(_shard(payload), EntryParser(1), _PassResolver())

    assert sorted(r.text for r in parsed.records) == ["x", "y"]
    assert parsed.stats.malformed == 1
    assert any("Unicode error" in r.getMessage() for r in caplog.records)


def test_corrupt_gzip_raises_and_closes_spool():
    shard = _shard(b"definitely not gzip")
    with pytest.raises(NetworkError) as ei:
        parse_and_resolve_shard(shard, EntryParser(1), _PassResolver())
    assert ei.value.transient is False
    assert shard.spool.closed


def test_truncated_gzip_raises():
    payload = _gz_bytes([b"cat\t2000,1,1"] * 200)
    shard = _shard(payload[: len(payload) // 2])
    with pytest.raises(NetworkError):
        parse_and_resolve_shard(shard, EntryParser(1), _PassResolver())


# --- write_parsed_shard ------------------------------------------------------


def test_write_parsed_shard_commits_and_releases_records(tmp_path):
    db = tmp_path / "ngrams.sqlite"
    init_ngram_database(db)
    shard = ParsedShard(item=WorkItem("eng", 1, 5),
                        records=[ResolvedEntry("a", 1), ResolvedEntry("b", 2)],
                        stats=ShardStats(entries=2))

    with ConnectionPool.for_sqlite(db, 1) as pool:
        out = write_parsed_shard(shard, pool, batch_size=1)
        with pool.connection() as conn:
            assert get_processed_shards(conn, 1) == {5}

    assert out.stats.rows_written == 2
    assert out.records == []

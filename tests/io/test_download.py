# tests/io/test_download.py
from __future__ import annotations

import logging
from typing import List

import pytest
import requests

from ngram_ingest.errors import NetworkError
from ngram_ingest.io.download import fetch_to_spool


class _Resp:
    def __init__(self, body: bytes = b"", *, exc=None, headers=None, chunks=None):
        self._body = body
        self._exc = exc
        self._chunks = chunks
        self.headers = headers if headers is not None else {"content-length": str(len(body))}
        self.closed = False

    def raise_for_status(self):
        if self._exc is not None:
            raise self._exc

    def iter_content(self, chunk_size):
        if self._chunks is not None:
            yield from self._chunks
            return
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def close(self):
        self.closed = True


def _no_sleep(monkeypatch) -> List[float]:
    sleeps: List[float] = []
    monkeypatch.setattr("ngram_ingest.io.download.time.sleep", lambda s: sleeps.append(s))
    return sleeps


def test_success_on_first_try(monkeypatch):
    calls: List[dict] = []
    resp = _Resp(b"x" * 10)

    class _Sess:
        def get(self, url, *, stream, timeout):
            calls.append({"url": url, "stream": stream, "timeout": timeout})
            return resp

    spool, nbytes = fetch_to_spool("https://example.com/1-00000-of-00024.gz",
                                   session=_Sess(), timeout=12.5, chunk_size=3)
    try:
        assert nbytes == 10
        assert spool.read() == b"x" * 10
    finally:
        spool.close()

    assert calls == [{"url": "https://example.com/1-00000-of-00024.gz",
                      "stream": True, "timeout": 12.5}]
    assert resp.closed


def test_retries_then_success(monkeypatch, caplog):
    caplog.set_level(logging.WARNING)
    sleeps = _no_sleep(monkeypatch)

    # HTTP 500 -> ConnectionError -> success
    attempts = {"n": 0}

    def _get(url, *, stream, timeout):
        attempts["n"] += 1
        if attempts["n"] == 1:
            return _Resp(exc=requests.HTTPError("500"))
        if attempts["n"] == 2:
            raise requests.ConnectionError("boom")
        return _Resp(b"payload")

    class _Sess:
        get = staticmethod(_get)

    spool, nbytes = fetch_to_spool("https://host/file.gz", session=_Sess(),
                                   max_retries=3, delay_seconds=1.0, backoff=2.0)
    spool.close()

    assert nbytes == len(b"payload")
    assert sleeps == [1.0, 2.0]
    warns = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("retrying in 1.0s" in m for m in warns)
    assert any("retrying in 2.0s" in m for m in warns)


def test_backoff_is_capped(monkeypatch):
    sleeps = _no_sleep(monkeypatch)

    class _Sess:
        def get(self, url, *, stream, timeout):
            raise requests.Timeout("slow")

    with pytest.raises(NetworkError):
        fetch_to_spool("https://host/x.gz", session=_Sess(), max_retries=5,
                       delay_seconds=1.0, backoff=4.0, max_delay_seconds=5.0)
    assert sleeps == [1.0, 4.0, 5.0, 5.0]


def test_exhausts_retries_and_raises(monkeypatch, caplog):
    caplog.set_level(logging.INFO)
    sleeps = _no_sleep(monkeypatch)

    class _Sess:
        def get(self, url, *, stream, timeout):
            raise requests.Timeout("slow")

    with pytest.raises(NetworkError) as ei:
        fetch_to_spool("https://host/bad.gz", session=_Sess(), max_retries=3,
                       delay_seconds=0.5, backoff=3.0)

    assert "slow" in str(ei.value)
    assert ei.value.transient
    assert ei.value.url == "https://host/bad.gz"
    assert isinstance(ei.value.__cause__, requests.Timeout)
    assert sleeps == [0.5, 1.5]

    errs = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any("Failed to download https://host/bad.gz after 3 attempts" in m for m in errs)


def test_truncated_body_is_retried(monkeypatch):
    sleeps = _no_sleep(monkeypatch)
    responses = [
        _Resp(headers={"content-length": "10"}, chunks=[b"abc"]),
        _Resp(b"abcdefghij"),
    ]

    class _Sess:
        def get(self, url, *, stream, timeout):
            return responses.pop(0)

    spool, nbytes = fetch_to_spool("https://host/t.gz", session=_Sess(), max_retries=2)
    try:
        assert nbytes == 10
        assert spool.read() == b"abcdefghij"
    finally:
        spool.close()
    assert len(sleeps) == 1


def test_malformed_url_is_not_retried(monkeypatch):
    sleeps = _no_sleep(monkeypatch)
    calls = {"n": 0}

    class _Sess:
        def get(self, url, *, stream, timeout):
            calls["n"] += 1
            raise requests.exceptions.MissingSchema("no scheme")

    with pytest.raises(NetworkError) as ei:
        fetch_to_spool("host/x.gz", session=_Sess(), max_retries=5)

    assert ei.value.transient is False
    assert calls["n"] == 1
    assert sleeps == []


def test_large_body_spills_to_disk(monkeypatch):
    body = bytes(range(256)) * 64

    class _Sess:
        def get(self, url, *, stream, timeout):
            return _Resp(body)

    spool, nbytes = fetch_to_spool("https://host/big.gz", session=_Sess(),
                                   spool_max_bytes=1024, chunk_size=1000)
    try:
        assert nbytes == len(body)
        assert spool.read() == body
    finally:
        spool.close()

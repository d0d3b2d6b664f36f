from __future__ import annotations

import logging
import tempfile
import time
from contextlib import closing
from typing import IO, Optional, Tuple

import requests

from ngram_ingest.errors import NetworkError

logger = logging.getLogger(__name__)

__all__ = ["fetch_to_spool", "DEFAULT_CHUNK_SIZE"]

DEFAULT_CHUNK_SIZE = 1 << 20  # 1 MiB

# Request-construction problems; retrying cannot help.
_NON_TRANSIENT = (
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidSchema,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidHeader,
)


class _TruncatedBody(Exception):
    """Fewer bytes arrived than Content-Length announced."""


_TRANSIENT = (
    requests.ConnectionError,
    requests.Timeout,
    requests.HTTPError,
    requests.exceptions.ChunkedEncodingError,
    _TruncatedBody,
)


def fetch_to_spool(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    max_retries: int = 5,
    delay_seconds: float = 1.0,
    backoff: float = 2.0,
    max_delay_seconds: float = 60.0,
    timeout: float = 60.0,
    spool_max_bytes: int = 64 * (1 << 20),
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Tuple[IO[bytes], int]:
    """
    GET a URL with stream=True and copy the body into a spooled temp file.

    Connection errors, timeouts, non-2xx statuses and truncated bodies are
    retried with exponential backoff (delay capped at max_delay_seconds).
    Malformed requests fail immediately.

    Returns (spool, nbytes); the spool is rewound and the caller must close it.
    Raises NetworkError once retries are exhausted.
    """
    sess = session or requests.Session()
    delay = delay_seconds

    for attempt in range(1, max_retries + 1):
        spool = tempfile.SpooledTemporaryFile(max_size=spool_max_bytes, mode="w+b")
        try:
            logger.info("Downloading %s (attempt %d)", url, attempt)
            nbytes = _copy_body(sess, url, spool, timeout=timeout, chunk_size=chunk_size)
            spool.seek(0)
            logger.info("Downloaded %s (%s bytes)", url, f"{nbytes:,}")
            return spool, nbytes
        except _NON_TRANSIENT as exc:
            spool.close()
            logger.error("Not retrying %s: %s", url, exc)
            raise NetworkError(f"Bad request for {url}: {exc}", url=url,
                               transient=False) from exc
        except _TRANSIENT as exc:
            spool.close()
            if attempt == max_retries:
                logger.error("Failed to download %s after %d attempts: %s",
                             url, max_retries, exc)
                raise NetworkError(f"Failed to download {url}: {exc}", url=url) from exc
            logger.warning("Download failed (%s); retrying in %.1fs...", exc, delay)
            time.sleep(delay)
            delay = min(delay * backoff, max_delay_seconds)
        except BaseException:
            spool.close()
            raise

    # max_retries < 1
    raise NetworkError(f"No download attempts made for {url}", url=url)


def _copy_body(
    sess: requests.Session,
    url: str,
    sink: IO[bytes],
    *,
    timeout: float,
    chunk_size: int,
) -> int:
    resp = sess.get(url, stream=True, timeout=timeout)
    with closing(resp):
        resp.raise_for_status()

        expected = None
        content_length = resp.headers.get("content-length")
        if content_length:
            try:
                expected = int(content_length)
            except ValueError:
                logger.debug("Non-numeric content-length=%r for %s", content_length, url)

        nbytes = 0
        for chunk in resp.iter_content(chunk_size=chunk_size):
            if chunk:
                sink.write(chunk)
                nbytes += len(chunk)

    if expected is not None and nbytes < expected:
        raise _TruncatedBody(f"got {nbytes} of {expected} bytes")
    return nbytes

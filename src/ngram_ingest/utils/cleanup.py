# ngram_ingest/utils/cleanup.py
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

__all__ = ["SIDECAR_SUFFIXES", "safe_db_cleanup"]

SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


def safe_db_cleanup(
    db_path: Union[str, Path],
    max_retries: int = 5,
    delay_seconds: float = 2.0,
    backoff: float = 1.5,
) -> bool:
    """
    Remove a SQLite database file together with its WAL/SHM/journal files.

    Behavior
    --------
    - If nothing exists: returns True (idempotent no-op).
    - If the path is a directory: raises ValueError.
    - Retries with backoff while files are busy (e.g. NFS, open handles).
    """
    path = Path(db_path).expanduser()
    if path.is_dir():
        raise ValueError(f"{path!s} is a directory, not a database file")

    targets = [path] + [path.with_name(path.name + s) for s in SIDECAR_SUFFIXES]

    delay = delay_seconds
    for attempt in range(1, max_retries + 1):
        try:
            for target in targets:
                target.unlink(missing_ok=True)
            logger.info("Removed %s and its sidecar files (attempt %d)", path, attempt)
            return True
        except OSError as exc:
            if attempt == max_retries:
                logger.error(
                    "Could not remove %s after %d attempts: %s",
                    path,
                    max_retries,
                    exc,
                )
                return False

            logger.warning(
                "Removing %s failed (attempt %d/%d): %s",
                path,
                attempt,
                max_retries,
                exc,
            )
            time.sleep(delay)
            delay *= backoff

    return False

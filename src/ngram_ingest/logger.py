"""Logging configuration for the ingestion pipeline."""
from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "log_path_for"]

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP stack loggers that report every pooled connection at DEBUG.
_NOISY_LIBRARIES = ("urllib3", "requests")


def log_path_for(db_path: Union[str, Path], filename_prefix: str = "ngram_ingest") -> Path:
    """Timestamped log file path in the directory that holds the database file."""
    db_file = Path(db_path).expanduser().resolve()
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return db_file.parent / f"{filename_prefix}_{stamp}.log"


def _file_handler(path: Path, rotate: bool, max_bytes: int, backup_count: int) -> logging.Handler:
    if rotate:
        return RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count,
                                   encoding="utf-8")
    return logging.FileHandler(path, mode="w", encoding="utf-8")


def setup_logger(
        db_path: Union[str, Path],
        *,
        level: int = logging.INFO,
        filename_prefix: str = "ngram_ingest",
        console: bool = False,
        rotate: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 3,
        force: bool = False,
        library_level: int = logging.WARNING,
) -> Path:
    """
    Send root logging to a timestamped file beside the SQLite database.

    Worker threads are named by stage (download_0, parse_1, ...), and the
    thread name is part of every record so interleaved shard logs can be
    told apart.

    Args:
        db_path: Path to the SQLite database file (need not exist yet)
        level: Level for the pipeline's own loggers and all handlers
        filename_prefix: Prefix for the log filename
        console: Also log to stderr
        rotate: Use a RotatingFileHandler instead of a plain FileHandler
        max_bytes: Size at which the log rotates (rotate=True only)
        backup_count: Rotated files to keep (rotate=True only)
        force: Detach and close existing root handlers first
        library_level: Level applied to the urllib3/requests loggers

    Returns:
        Path to the log file

    Examples:
        >>> setup_logger("/data/ngrams/eng.sqlite")
        PosixPath('/data/ngrams/ngram_ingest_20250929_175430.log')
    """
    log_path = log_path_for(db_path, filename_prefix)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

    handlers = [_file_handler(log_path, rotate, max_bytes, backup_count)]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, library_level))

    root.info("Logging initialized: %s", log_path)
    return log_path

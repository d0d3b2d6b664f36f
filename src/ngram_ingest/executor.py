"""Bounded, multi-stage concurrent execution of shard work items."""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, Sequence

from tqdm import tqdm

from ngram_ingest.io.locations import WorkItem
from ngram_ingest.types import DownloadedShard, ExecutionResult, ParsedShard

logger = logging.getLogger(__name__)

__all__ = ["process_shards"]

_POLL_S = 0.5


def process_shards(
        items: Sequence[WorkItem],
        *,
        download: Callable[[WorkItem], DownloadedShard],
        transform: Callable[[DownloadedShard], ParsedShard],
        write: Callable[[ParsedShard], ParsedShard],
        download_workers: int,
        parse_workers: int,
        write_workers: int,
        queue_capacity: int,
        fail_fast: bool = True,
        desc: str = "Shards",
) -> ExecutionResult:
    """
    Run items through download -> parse/resolve -> write stages.

    Each stage has its own thread pool; stages are connected by bounded
    queues so a slow consumer blocks its producers instead of letting
    shard bodies pile up in memory.

    On the first failure (when fail_fast) no further shards are started and
    shards already queued between stages are discarded; shards in flight run
    to completion, so every started transaction commits or rolls back.

    Args:
        items: Shards to process (order is not significant)
        download: WorkItem -> DownloadedShard
        transform: DownloadedShard -> ParsedShard (must close the spool)
        write: ParsedShard -> ParsedShard with stats.rows_written set
        download_workers: Threads in the download stage
        parse_workers: Threads in the parse/resolve stage
        write_workers: Threads in the write stage
        queue_capacity: Max shards buffered between two stages
        fail_fast: Stop dispatching new shards after the first failure
        desc: Progress bar label

    Returns:
        ExecutionResult with completed items, failures and summed stats
    """
    result = ExecutionResult()
    if not items:
        return result

    lock = threading.Lock()
    stop = threading.Event()

    todo: "queue.Queue[Any]" = queue.Queue()
    for it in items:
        todo.put(it)
    downloaded: "queue.Queue[Any]" = queue.Queue(maxsize=queue_capacity)
    parsed: "queue.Queue[Any]" = queue.Queue(maxsize=queue_capacity)

    with tqdm(
        total=len(items),
        desc=desc,
        unit="shards",
        ncols=100,
        bar_format='{desc} {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]'
    ) as pbar:

        def fail(item: WorkItem, exc: BaseException) -> None:
            with lock:
                result.failed.append((item, exc))
                pbar.update(1)
            logger.error("%d-gram shard %d failed: %s", item.order, item.index, exc)
            if fail_fast and not stop.is_set():
                logger.error("Stopping dispatch after first failure")
                stop.set()

        def discard(payload: Any) -> None:
            if isinstance(payload, DownloadedShard):
                payload.close()

        def put(q: "queue.Queue[Any]", payload: Any) -> None:
            """Blocking put that gives up (and discards) once stopped."""
            while not stop.is_set():
                try:
                    q.put(payload, timeout=_POLL_S)
                    return
                except queue.Full:
                    continue
            discard(payload)

        def consume(q: "queue.Queue[Any]", upstream_done: threading.Event):
            """Yield queued payloads until upstream has finished and q is empty."""
            while True:
                try:
                    yield q.get(timeout=_POLL_S)
                except queue.Empty:
                    if not upstream_done.is_set():
                        continue
                    try:
                        yield q.get_nowait()
                    except queue.Empty:
                        return

        def guarded(loop: Callable[[], None]) -> Callable[[], None]:
            def run() -> None:
                try:
                    loop()
                except BaseException:
                    logger.exception("Pipeline worker crashed")
                    stop.set()
                    raise
            return run

        def download_loop() -> None:
            while not stop.is_set():
                try:
                    item = todo.get_nowait()
                except queue.Empty:
                    return
                try:
                    shard = download(item)
                except Exception as exc:
                    fail(item, exc)
                    continue
                put(downloaded, shard)

        def parse_loop() -> None:
            for shard in consume(downloaded, downloads_done):
                if stop.is_set():
                    discard(shard)
                    continue
                try:
                    parsed_shard = transform(shard)
                except Exception as exc:
                    discard(shard)
                    fail(shard.item, exc)
                    continue
                put(parsed, parsed_shard)

        def write_loop() -> None:
            for shard in consume(parsed, parses_done):
                if stop.is_set():
                    continue
                try:
                    done = write(shard)
                except Exception as exc:
                    fail(shard.item, exc)
                    continue
                with lock:
                    result.completed.append(done.item)
                    result.stats.add(done.stats)
                    pbar.update(1)

        downloads_done = threading.Event()
        parses_done = threading.Event()
        dl_pool = ThreadPoolExecutor(download_workers, thread_name_prefix="download")
        parse_pool = ThreadPoolExecutor(parse_workers, thread_name_prefix="parse")
        write_pool = ThreadPoolExecutor(write_workers, thread_name_prefix="write")
        try:
            dl_futs = [dl_pool.submit(guarded(download_loop)) for _ in range(download_workers)]
            parse_futs = [parse_pool.submit(guarded(parse_loop)) for _ in range(parse_workers)]
            write_futs = [write_pool.submit(guarded(write_loop)) for _ in range(write_workers)]

            # Finish stages upstream-first so each consumer can exit once its
            # producers are done and its queue is empty.
            wait(dl_futs)
            downloads_done.set()
            wait(parse_futs)
            parses_done.set()
            wait(write_futs)
        except BaseException:
            stop.set()
            downloads_done.set()
            parses_done.set()
            raise
        finally:
            dl_pool.shutdown(wait=True)
            parse_pool.shutdown(wait=True)
            write_pool.shutdown(wait=True)

        _reraise_worker_crash(dl_futs + parse_futs + write_futs)

    if stop.is_set():
        skipped = len(items) - len(result.completed) - len(result.failed)
        if skipped:
            logger.warning("Aborted with %d shards not completed", skipped)

    return result


def _reraise_worker_crash(futs: List[Future]) -> None:
    for fut in futs:
        exc: Optional[BaseException] = fut.exception()
        if exc is not None:
            raise exc

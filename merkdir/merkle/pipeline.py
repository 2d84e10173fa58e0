"""Concurrent leaf ingestion.

A fixed pool of worker threads pulls ``(index, path)`` jobs from a shared
queue, stream-hashes each file and reports back on a results queue. The
calling thread acts as coordinator: it slots each leaf into its original
position, and aborts on the first failure. Partial results are discarded.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from merkdir.merkle.hashing import CHUNK_SIZE, create_leaf
from merkdir.merkle.models import IOFailure, Leaf

logger = logging.getLogger(__name__)

_DONE = None


def default_workers() -> int:
    # Hashing is mostly waiting on disk, so oversubscribe the CPUs.
    return (os.cpu_count() or 1) * 2


class _Worker(threading.Thread):
    def __init__(
        self,
        root: Path,
        jobs: queue.Queue,
        results: queue.Queue,
        abort: threading.Event,
        chunk_size: int,
        on_read: Callable[[int], None] | None,
    ) -> None:
        super().__init__(daemon=True)
        self._root = root
        self._jobs = jobs
        self._results = results
        self._abort = abort
        self._chunk_size = chunk_size
        self._on_read = on_read

    def run(self) -> None:
        while not self._abort.is_set():
            job = self._jobs.get()
            if job is _DONE:
                return
            index, name = job
            try:
                leaf = self._hash(name)
            except Exception as e:
                self._results.put((index, e))
                return
            self._results.put((index, leaf))

    def _hash(self, name: str) -> Leaf:
        try:
            f = open(self._root / name, "rb")
        except OSError as e:
            raise IOFailure(name, e) from e
        with f:
            return create_leaf(
                name, f, chunk_size=self._chunk_size, on_read=self._on_read
            )


def hash_files(
    root: Path,
    names: Sequence[str],
    *,
    workers: int | None = None,
    chunk_size: int = CHUNK_SIZE,
    on_read: Callable[[int], None] | None = None,
) -> list[Leaf]:
    """Hash every file in *names* (relative to *root*) into a leaf.

    The returned leaves are in the same order as *names*, whatever order the
    workers finish in. The first ``IOFailure`` or ``RandomnessFailure`` from
    any worker is re-raised and nothing is returned.
    """
    root = Path(root)
    if not names:
        return []
    count = min(workers or default_workers(), len(names))

    jobs: queue.Queue = queue.Queue()
    for job in enumerate(names):
        jobs.put(job)
    for _ in range(count):
        jobs.put(_DONE)

    results: queue.Queue = queue.Queue()
    abort = threading.Event()
    pool = [
        _Worker(root, jobs, results, abort, chunk_size, on_read) for _ in range(count)
    ]
    logger.debug("Hashing %d files with %d workers", len(names), count)
    for w in pool:
        w.start()

    slots: list[Leaf | None] = [None] * len(names)
    try:
        for _ in range(len(names)):
            index, outcome = results.get()
            if isinstance(outcome, Exception):
                logger.error("Hashing failed for %s: %s", names[index], outcome)
                raise outcome
            slots[index] = outcome
    finally:
        abort.set()
        # Unblock idle workers; an in-flight hash runs to completion.
        for _ in range(count):
            jobs.put(_DONE)
        for w in pool:
            w.join()

    logger.info("Hashed %d files", len(names))
    return slots  # type: ignore[return-value]

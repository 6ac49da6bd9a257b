"""
Fork-join helpers for frame-parallel work.

Frames are dealt to workers round-robin (worker ``w`` owns frames
``w, w + W, w + 2W, ...``). Each worker fills a private result; the
caller merges the results only after every worker has finished.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterator, List, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")


def round_robin_indices(n_items: int, n_workers: int, worker: int) -> np.ndarray:
    """Item indices owned by ``worker`` under a round-robin partition."""
    return np.arange(worker, n_items, n_workers, dtype=np.intp)


def fork_join(
    n_items: int,
    n_workers: int,
    task: Callable[[np.ndarray], T],
) -> List[T]:
    """
    Run ``task`` over a round-robin partition of ``range(n_items)``.

    Args:
        n_items: Number of independent items (frames).
        n_workers: Requested pool size; never more than ``n_items``.
        task: Called once per worker with that worker's index array.

    Returns:
        Per-worker results in worker order. Exceptions raised by a
        worker propagate to the caller after the pool has shut down.
    """
    n_workers = max(1, min(n_workers, n_items))
    partitions = [round_robin_indices(n_items, n_workers, w) for w in range(n_workers)]
    if n_workers == 1:
        return [task(partitions[0])]

    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        futures = [pool.submit(task, part) for part in partitions]
        return [f.result() for f in futures]


@contextmanager
def timed(stage: str) -> Iterator[None]:
    """Log the wall time of a pipeline stage at DEBUG level."""
    t0 = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.1f ms", stage, (time.perf_counter() - t0) * 1000.0)

"""
Parallel processing utilities for spatial autocorrelation analysis.
"""
import os
import time
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from spatial_autocorrelation.core.decorators import performance_tracker

logger = logging.getLogger(__name__)


class CancelSignal(Protocol):
    """Anything with an ``is_set()`` method, e.g. ``threading.Event``."""

    def is_set(self) -> bool:
        ...


def resolve_workers(n_jobs: Optional[int], n_tasks: int) -> int:
    """Number of worker processes for ``n_tasks`` tasks; negative means all but one core."""
    if n_jobs is None or n_jobs == 0:
        n_jobs = 1
    if n_jobs < 0:
        cpu_count = os.cpu_count() or 2
        n_jobs = max(1, cpu_count - 1)
    return max(1, min(n_jobs, n_tasks))


@performance_tracker()
def parallel_map(
    func: Callable[..., Any],
    tasks: Sequence[Tuple[Any, ...]],
    max_workers: Optional[int] = None,
    cancel_event: Optional[CancelSignal] = None,
    poll_interval: float = 0.05,
    progress: bool = False,
) -> List[Optional[Any]]:
    """
    Apply ``func(*task)`` to every task in worker processes, keeping task order.

    Exceptions raised by a task propagate to the caller. When ``cancel_event``
    is set, tasks that have not started are cancelled and the returned list
    holds None in their slots.

    Args:
        func: Picklable top-level function.
        tasks: Argument tuples, one per task.
        max_workers: Number of worker processes.
        cancel_event: Cooperative cancellation signal checked between completions.
        poll_interval: Seconds between checks of the cancellation signal.
        progress: Whether to log progress at INFO level.

    Returns:
        Results in task order.
    """
    if not tasks:
        return []

    workers = resolve_workers(max_workers, len(tasks))
    logger.info(f"Starting parallel processing of {len(tasks)} tasks with {workers} workers")
    start_time = time.time()

    results: List[Optional[Any]] = [None] * len(tasks)
    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures: List[Future] = [executor.submit(func, *task) for task in tasks]
        position = {future: i for i, future in enumerate(futures)}
        pending = set(futures)
        completed = 0

        while pending:
            done, pending = wait(pending, timeout=poll_interval, return_when=FIRST_COMPLETED)
            for future in done:
                results[position[future]] = future.result()
                completed += 1
                if progress and completed % max(1, len(tasks) // 10) == 0:
                    elapsed = time.time() - start_time
                    logger.info(f"Progress: {completed}/{len(tasks)} tasks - {elapsed:.1f}s elapsed")

            if pending and cancel_event is not None and cancel_event.is_set():
                for future in pending:
                    future.cancel()
                logger.warning(f"Parallel processing cancelled after {completed}/{len(tasks)} tasks")
                break

    elapsed = time.time() - start_time
    logger.info(f"Parallel processing finished in {elapsed:.1f}s")
    return results

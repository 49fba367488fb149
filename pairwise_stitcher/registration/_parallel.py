"""Split-work, run-tasks, join, merge helper shared by all parallel operations.

Tasks run on a caller-supplied `concurrent.futures.Executor`. The calling
thread blocks until every task has finished, then merges the results in
submission order. A task raising an exception does not abort the join: the
failure is logged, counted in `TaskOutcome.failed` and the task's contribution
is left out of the merge.
"""
import contextlib
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generator, Generic, Iterable, List, Optional, TypeVar

from ._portions import default_parallelism

# Configure logger
logger = logging.getLogger(__name__)

W = TypeVar("W")
R = TypeVar("R")
M = TypeVar("M")


@dataclass
class TaskOutcome(Generic[M]):
    """Merged result of a parallel operation.

    Attributes:
        value: The merged value built from all successful tasks
        failed: Number of tasks that raised and were left out of the merge
    """
    value: M
    failed: int = 0

    @property
    def complete(self) -> bool:
        """True if every task contributed to ``value``."""
        return self.failed == 0


def map_then_merge(
    executor: Executor,
    task: Callable[[W], R],
    work_items: Iterable[W],
    merge: Callable[[List[R]], M],
    description: str = "task",
) -> TaskOutcome[M]:
    """Run ``task`` once per work item on ``executor`` and merge the results.

    Args:
        executor: Executor the tasks are submitted to; it is not shut down
        task: Function applied to a single work item
        work_items: Independent units of work, one task each
        merge: Combines the list of successful results (in submission order)
        description: Name used when logging failed tasks

    Returns:
        TaskOutcome holding the merged value and the number of failed tasks
    """
    futures: List[Future] = [executor.submit(task, item) for item in work_items]

    results: List[R] = []
    failed = 0
    for index, future in enumerate(futures):
        try:
            results.append(future.result())
        except Exception:
            failed += 1
            logger.exception(f"{description} {index + 1}/{len(futures)} failed, leaving out its result")

    if failed:
        logger.warning(f"{failed} of {len(futures)} {description} tasks failed; result is partial")
    return TaskOutcome(merge(results), failed)


@contextlib.contextmanager
def default_executor(num_threads: Optional[int] = None) -> Generator[ThreadPoolExecutor, None, None]:
    """Temporary thread pool sized to the hardware, shut down on exit."""
    executor = ThreadPoolExecutor(max_workers=num_threads or default_parallelism())
    try:
        yield executor
    finally:
        executor.shutdown(wait=True)


@contextlib.contextmanager
def executor_or_default(
    executor: Optional[Executor], num_threads: Optional[int] = None
) -> Generator[Executor, None, None]:
    """Yield ``executor`` untouched, or a temporary pool if it is None."""
    if executor is not None:
        yield executor
        return
    with default_executor(num_threads) as temporary:
        yield temporary

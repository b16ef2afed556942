"""Task dispatch with partition affinity for per-region work."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchTask:
    """A unit of work plus the partition it must run on.

    ``affinity=None`` means any thread. Tasks sharing an affinity key run
    one after another, in submission order, on the same worker.
    """

    fn: Callable[[], Any]
    affinity: str | None = None
    label: str = ""


class TaskDispatcher:
    """Runs batches of tasks on a ThreadPoolExecutor, grouped by affinity.

    Falls back to inline execution when there is a single worker or the
    host cannot schedule work per partition.
    """

    __slots__ = ("_num_workers", "_timeout", "_partitioned", "_executor")

    def __init__(self, num_workers: int = 1, timeout: float = 2.0, partitioned: bool = False) -> None:
        self._num_workers = num_workers
        self._timeout = timeout
        self._partitioned = partitioned
        self._executor: ThreadPoolExecutor | None = None
        if self.parallel:
            self._executor = ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="region-worker")

    @property
    def parallel(self) -> bool:
        return self._num_workers > 1 and self._partitioned

    def dispatch(self, tasks: list[DispatchTask]) -> list[Any]:
        """Run *tasks* and block until done; results come back in submission order.

        A failing task is logged and yields ``None``; the rest of the batch
        still runs.
        """
        if not tasks:
            return []
        results: list[Any] = [None] * len(tasks)

        # Fast path: run inline, no thread overhead
        if self._executor is None:
            for index, task in enumerate(tasks):
                results[index] = self._run_one(task)
            return results

        lanes: dict[object, list[int]] = {}
        for index, task in enumerate(tasks):
            lane = task.affinity if task.affinity is not None else ("any", index)
            lanes.setdefault(lane, []).append(index)

        futures: dict[Future[list[tuple[int, Any]]], object] = {}
        for lane, indices in lanes.items():
            future = self._executor.submit(self._run_lane, [(i, tasks[i]) for i in indices])
            futures[future] = lane

        for future in as_completed(futures, timeout=self._timeout):
            lane = futures[future]
            try:
                for index, value in future.result():
                    results[index] = value
            except Exception:
                logger.exception("Worker lane %r failed", lane)
        return results

    def _run_lane(self, batch: list[tuple[int, DispatchTask]]) -> list[tuple[int, Any]]:
        return [(index, self._run_one(task)) for index, task in batch]

    @staticmethod
    def _run_one(task: DispatchTask) -> Any:
        try:
            return task.fn()
        except Exception:
            logger.exception("Task %s (affinity=%s) failed, skipping", task.label or task.fn, task.affinity)
            return None

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)

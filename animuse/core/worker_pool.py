"""Bounded worker pool for CPU-heavy tasks kept off the event loop."""

import asyncio
import itertools
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal

from animuse.core.contracts import FilterSpec, RecommendationRecord
from animuse.core.errors import FilterTimeoutError, UnknownTaskError
from animuse.core.filtering import run_filter_task
from animuse.logging import get_logger

logger = get_logger(__name__)

PoolMode = Literal["process", "thread", "inline"]

FILTER_TASK = "filter"

TASK_HANDLERS: dict[str, Callable[[Any], Any]] = {
    FILTER_TASK: run_filter_task,
}


def register_task(task_type: str, handler: Callable[[Any], Any]) -> None:
    """Register a handler for a task type.

    Handlers registered at runtime are only visible to worker processes
    started afterwards with the fork start method; thread and inline pools
    see them immediately.
    """
    TASK_HANDLERS[task_type] = handler


def run_task(task_type: str, payload: Any) -> Any:
    """Dispatch a `(task_type, payload)` message to its handler."""
    handler = TASK_HANDLERS.get(task_type)
    if handler is None:
        raise UnknownTaskError(f"Unknown task type: {task_type}", operation=task_type)
    return handler(payload)


class WorkerPool:
    """Fixed number of worker slots with FIFO queueing and a task timeout."""

    def __init__(
        self,
        max_workers: int = 2,
        task_timeout: float = 10.0,
        mode: PoolMode = "process",
    ) -> None:
        """Initialize the pool.

        Args:
            max_workers: Number of tasks allowed to run at once
            task_timeout: Seconds before a running task fails with a timeout
            mode: "process" or "thread" executors, or "inline" to run on
                the event loop thread (degraded mode, no background substrate)
        """
        self.max_workers = max_workers
        self.task_timeout = task_timeout
        self.mode = mode
        self._executor: Executor | None = None
        self._retired: set[Executor] = set()
        self._running: dict[Executor, int] = {}
        self._slots = asyncio.Semaphore(max_workers)
        self._active = 0
        self._queued = 0

    @property
    def active_workers(self) -> int:
        return self._active

    @property
    def queue_length(self) -> int:
        return self._queued

    @property
    def is_ready(self) -> bool:
        return self._executor is not None or self.mode == "inline"

    def start(self) -> None:
        """Create the executor if not already running."""
        if self._executor is not None or self.mode == "inline":
            if self.mode == "inline":
                logger.warning("Worker pool running inline: tasks will block the event loop")
            return

        if self.mode == "process":
            self._executor = ProcessPoolExecutor(max_workers=self.max_workers)
        else:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="animuse-worker",
            )
        logger.info(f"Started {self.mode} worker pool with {self.max_workers} workers")

    def shutdown(self) -> None:
        """Stop the executor, abandoning queued work."""
        if self._executor is not None:
            logger.info("Shutting down worker pool")
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        for executor in list(self._retired):
            _terminate_workers(executor)
        self._retired.clear()
        self._running.clear()

    async def execute(self, task_type: str, payload: Any, source_id: str | None = None) -> Any:
        """Run one task on the next free worker.

        Args:
            task_type: Registered handler name
            payload: Picklable handler argument
            source_id: Catalog the task works on, attached to timeout errors

        Raises:
            UnknownTaskError: If no handler is registered for the task type
            FilterTimeoutError: If the task runs longer than the task timeout
        """
        if task_type not in TASK_HANDLERS:
            raise UnknownTaskError(f"Unknown task type: {task_type}", operation=task_type)

        if self._executor is None and self.mode != "inline":
            self.start()

        self._queued += 1
        try:
            await self._slots.acquire()
        finally:
            self._queued -= 1

        self._active += 1
        try:
            if self._executor is None:
                return run_task(task_type, payload)

            executor = self._executor
            self._running[executor] = self._running.get(executor, 0) + 1
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(executor, run_task, task_type, payload)
            try:
                return await asyncio.wait_for(future, timeout=self.task_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Task {task_type} timed out after {self.task_timeout}s")
                self._retire(executor)
                raise FilterTimeoutError(task_type, self.task_timeout, source_id=source_id)
            finally:
                self._finish(executor)
        finally:
            self._active -= 1
            self._slots.release()

    def _retire(self, executor: Executor) -> None:
        """Replace an executor whose worker is stuck on a timed-out task.

        The stuck worker would keep holding one of the executor's workers, so
        later tasks would queue behind it and time out too. Other tasks already
        running on the retired executor still complete.
        """
        if executor is not self._executor:
            return

        logger.info(f"Retiring {self.mode} executor with a stuck worker")
        self._executor = None
        self.start()
        executor.shutdown(wait=False)
        self._retired.add(executor)

    def _finish(self, executor: Executor) -> None:
        remaining = self._running.get(executor, 1) - 1
        if remaining > 0:
            self._running[executor] = remaining
            return

        self._running.pop(executor, None)
        if executor in self._retired:
            self._retired.discard(executor)
            _terminate_workers(executor)


def _terminate_workers(executor: Executor) -> None:
    """Kill the processes of an idle retired process pool.

    Threads cannot be killed; a retired thread pool's stuck thread exits
    when its task returns.
    """
    if not isinstance(executor, ProcessPoolExecutor):
        return

    terminate = getattr(executor, "terminate_workers", None)
    if terminate is not None:
        terminate()
        return

    for process in list((getattr(executor, "_processes", None) or {}).values()):
        process.terminate()


@dataclass
class FilterResponse:
    """Result of one filter request."""

    sequence: int
    records: list[RecommendationRecord]
    superseded: bool


class FilterChannel:
    """Per-consumer filter requests stamped with a sequence number.

    A response whose sequence is older than the latest issued request comes
    back marked `superseded` so the consumer can drop it instead of letting a
    slow stale result overwrite a fresh one.
    """

    def __init__(self, pool: WorkerPool, source_id: str | None = None) -> None:
        self._pool = pool
        self.source_id = source_id
        self._counter = itertools.count(1)
        self._latest = 0

    @property
    def latest_sequence(self) -> int:
        return self._latest

    async def submit(
        self,
        records: list[RecommendationRecord],
        spec: FilterSpec,
        excluded_titles: Iterable[str] = (),
    ) -> FilterResponse:
        sequence = next(self._counter)
        self._latest = sequence

        payload = {
            "records": list(records),
            "spec": spec,
            "excluded_titles": list(excluded_titles),
        }
        result = await self._pool.execute(FILTER_TASK, payload, source_id=self.source_id)

        superseded = sequence != self._latest
        if superseded:
            logger.debug(f"Filter response {sequence} superseded by {self._latest}")
        return FilterResponse(sequence=sequence, records=result, superseded=superseded)

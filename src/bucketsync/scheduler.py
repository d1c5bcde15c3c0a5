"""
Two concurrency limited task queues, one for directory recursion and one for file transfers.

The directory queue is paused while the file queue has a large backlog, so walking a wide tree
does not queue up an unbounded number of file transfers.
"""

import asyncio
import heapq
import logging
from collections.abc import Callable
from itertools import count

from .config import DEFAULT_DIRS_CONCURRENCY, DEFAULT_FILES_CONCURRENCY, TransferPolicy
from .types import PriorizedTask, Priority, Stats, SyncResult, TaskFactory, TaskFailure

logger = logging.getLogger(__name__)

BACKPRESSURE_FACTOR = 3
STATS_LOG_INTERVAL = 5  # seconds


class TaskQueue:
    def __init__(self, name: str, concurrency: int, on_task_done: Callable[["TaskQueue", PriorizedTask, Exception | None], None]):
        if concurrency < 1:
            raise ValueError(f"concurrency needs to be at least 1, got {concurrency}")

        self._name: str = name
        self._concurrency: int = concurrency
        self._on_task_done = on_task_done

        self._heap: list[PriorizedTask] = []
        self._counter = count()  # tie-breaker, keeps enumeration order within one priority
        self._running: int = 0
        self._paused: bool = False
        self._tasks: set[asyncio.Task] = set()  # strong refs to running tasks

        self.stats: Stats = Stats()

    def __str__(self):
        return f"Queue {self._name} ({self._running}/{self._concurrency} running, {self.size} pending{', paused' if self._paused else ''})"

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def size(self) -> int:
        """Tasks waiting to be started"""
        return len(self._heap)

    @property
    def running(self) -> int:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_idle(self) -> bool:
        return not self._heap and self._running == 0

    def put(self, description: str, factory: TaskFactory, priority: Priority):
        heapq.heappush(self._heap, PriorizedTask(priority, next(self._counter), description, factory))
        self.stats.add_remaining()

        self._dispatch()

    def pause(self):
        self._paused = True

    def resume(self):
        self._paused = False

        self._dispatch()

    def _dispatch(self):
        while not self._paused and self._heap and self._running < self._concurrency:
            priorized_task = heapq.heappop(self._heap)
            self._running += 1

            task = asyncio.create_task(self._run(priorized_task), name=priorized_task.description)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, priorized_task: PriorizedTask):
        error: Exception | None = None

        try:
            await priorized_task.factory()
        except Exception as exc:
            error = exc
            self.stats.increment_fail()
            logger.exception(exc)
            logger.error(f"failed processing task {priorized_task}, error {exc}")
        else:
            self.stats.increment_success()
        finally:
            self._running -= 1
            self._on_task_done(self, priorized_task, error)
            self._dispatch()


class DualQueueScheduler:
    """One instance per top-level sync call, shared by reference through all recursion levels."""

    def __init__(self, dirs_concurrency: int = DEFAULT_DIRS_CONCURRENCY, files_concurrency: int = DEFAULT_FILES_CONCURRENCY):
        self.dirs = TaskQueue("dirs", dirs_concurrency, self._task_done)
        self.files = TaskQueue("files", files_concurrency, self._task_done)

        self._failures: list[TaskFailure] = []
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_policy(cls, policy: TransferPolicy) -> "DualQueueScheduler":
        return cls(
            dirs_concurrency=policy.dirs_concurrency or DEFAULT_DIRS_CONCURRENCY,
            files_concurrency=policy.files_concurrency or DEFAULT_FILES_CONCURRENCY,
        )

    def __str__(self):
        return f"{self.dirs.stats} - {self.dirs}; {self.files.stats} - {self.files}"

    @property
    def backpressure_threshold(self) -> int:
        return BACKPRESSURE_FACTOR * self.files.concurrency

    @property
    def failures(self) -> list[TaskFailure]:
        return list(self._failures)

    def is_idle(self) -> bool:
        return self.dirs.is_idle and self.files.is_idle

    def add_directory(self, description: str, factory: TaskFactory):
        self._idle.clear()
        self.dirs.put(description, factory, Priority.LOW)

    def add_file(self, description: str, factory: TaskFactory):
        self._idle.clear()
        self.files.put(description, factory, Priority.HIGH)

    def record_failure(self, description: str, error: Exception):
        """Failure of work that was never queued, reported with the task failures by join()"""
        self._failures.append(TaskFailure(description, error))

    def apply_backpressure(self):
        """Called after the tasks of one directory level are queued."""
        if self.files.size > self.backpressure_threshold and not self.dirs.is_paused:
            logger.debug(f"pausing dir queue, {self.files.size} files pending")
            self.dirs.pause()

    def _task_done(self, queue: TaskQueue, priorized_task: PriorizedTask, error: Exception | None):
        if error is not None:
            self._failures.append(TaskFailure(priorized_task.description, error))

        if queue is self.files and self.dirs.is_paused and self.files.size < self.backpressure_threshold:
            logger.debug(f"unpausing dir queue, {self.files.size} files pending")
            self.dirs.resume()

        if self.is_idle():
            self._idle.set()

    async def join(self) -> SyncResult:
        """Wait until both queues have nothing pending and nothing running.

        Cannot hang: the file queue is never paused and every file completion may resume the dir queue.
        """
        while True:
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=STATS_LOG_INTERVAL)
            except asyncio.TimeoutError:
                logger.info(f"{self}")
                continue

            if self.is_idle():
                break

        logger.debug("both dir and files queues are finished")

        return SyncResult(succeeded=self.files.stats.success, failures=self.failures)

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


@dataclass(frozen=True)
class DirectoryItem:
    """One level of subdirectory below the listed prefix or local path"""

    name: str

    @property
    def is_dir(self) -> bool:
        return True

    def __str__(self):
        return f"{self.name}/"


@dataclass(frozen=True)
class FileItem:
    name: str
    mtime: datetime | None = None
    size: int | None = None

    @property
    def is_dir(self) -> bool:
        return False

    def __str__(self):
        return self.name


DirectoryEntry = DirectoryItem | FileItem


class Priority(IntEnum):
    HIGH = 1  # file transfers, shrink the outstanding work
    LOW = 2  # directory recursion, expands the outstanding work


TaskFactory = Callable[[], Awaitable[object]]


@dataclass(order=True)
class PriorizedTask:
    priority: Priority
    seq: int  # tie-breaker, keeps enumeration order within the same priority
    description: str = field(compare=False)
    factory: TaskFactory = field(compare=False, repr=False)

    def __str__(self):
        return f"{self.description} - {self.priority.name} priority"


@dataclass
class Stats:
    success: int = 0
    fail: int = 0
    remaining: int = 0

    def add_remaining(self):
        self.remaining += 1

    def increment_success(self):
        self.success += 1
        self.remaining -= 1

    def increment_fail(self):
        self.fail += 1
        self.remaining -= 1

    def __str__(self):
        return f"Stats: Success: {self.success:3d} Failed: {self.fail:3d}  Remaining: {self.remaining:3d}"


@dataclass
class TaskFailure:
    task: str
    error: BaseException

    def __str__(self):
        return f"{self.task}: {self.error!r}"


@dataclass
class SyncResult:
    """Outcome of a directory level operation. Truthy only if every task succeeded."""

    succeeded: int = 0
    failures: list[TaskFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def __bool__(self):
        return not self.failures

    def __str__(self):
        return f"SyncResult: succeeded {self.succeeded}, failed {self.failed}"

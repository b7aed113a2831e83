"""Worker pool port: bounded, weighted execution of independent tasks."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol, runtime_checkable

from .concurrency import Weight

_task_ids = itertools.count(1)


@runtime_checkable
class RunScopePort(Protocol):
    """Cancellation scope a task body can consult while it runs."""

    @property
    def cancelled(self) -> bool:
        ...

    async def wait(self) -> None:
        """Return once the scope has been cancelled."""
        ...


TaskBody = Callable[[RunScopePort], Awaitable[Any]]


@dataclass(frozen=True)
class Task:
    """One unit of work. ``task_id`` correlates its outcome to the caller."""

    url: str
    func: TaskBody
    weight: Weight = Weight.NORMAL
    task_id: Any = field(default_factory=lambda: next(_task_ids))


@dataclass(frozen=True)
class TaskOutcome:
    """Tagged result of running a task body: a value or the exception it raised."""

    task: Task
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@runtime_checkable
class WorkerPoolPort(Protocol):
    """Bounded queue drained by a fixed set of workers.

    ``submit`` never blocks; ``stop`` cancels in-flight work while
    ``wait`` drains what was queued. Both tear the pool down once.
    """

    def start(self) -> None:
        ...

    def submit(self, task: Task) -> bool:
        """Enqueue *task*; False when full or no longer accepting work."""
        ...

    def results(self) -> AsyncIterator[TaskOutcome]:
        """Outcomes in completion order; ends after teardown."""
        ...

    async def wait(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def stats(self) -> dict[str, int]:
        ...

"""Bounded asyncio worker pool with weighted admission.

Lifecycle::

    pool = WorkerPool(workers=8, queue_size=10_000, heavy_slots=2)
    pool.start()
    pool.submit(Task(url=url, func=body, weight=Weight.HEAVY))  # never blocks
    async for outcome in pool.results():
        ...
    await pool.wait()   # drain queued work, then close results
    # or
    await pool.stop()   # cancel in-flight work, discard the queue

Pool states: CREATED → STARTED → STOPPING → STOPPED. Both ``stop()``
and ``wait()`` are idempotent and reach STOPPED exactly once; after
that ``submit()`` returns False.

Result delivery is best-effort during ``stop()``: a worker blocked
handing a result to a full results queue is cancelled and the result
is dropped (and logged) so shutdown never hangs on a slow consumer.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, AsyncIterator

import structlog

from sharesniffer.domain.ports.concurrency import AdmissionPort
from sharesniffer.domain.ports.worker_pool import Task, TaskBody, TaskOutcome
from sharesniffer.infrastructure.concurrency import AdmissionController
from sharesniffer.infrastructure.config.schema import CheckConfig

log = structlog.get_logger(__name__)

_SENTINEL: Any = object()

__all__ = ["PoolState", "RunScope", "Task", "TaskBody", "TaskOutcome", "WorkerPool"]


class PoolState(Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"


class RunScope:
    """Cancellation scope shared by every task body of one pool."""

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    async def wait(self) -> None:
        await self._cancelled.wait()


class WorkerPool:
    """Fixed set of worker coroutines pulling from one bounded queue."""

    def __init__(
        self,
        *,
        workers: int = 8,
        queue_size: int = 10_000,
        result_queue_size: int = 100,
        heavy_slots: int = 2,
        admission: AdmissionPort | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if queue_size < 1 or result_queue_size < 1:
            raise ValueError("queue_size and result_queue_size must be >= 1")
        self._worker_count = workers
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._results: asyncio.Queue[TaskOutcome] = asyncio.Queue(maxsize=result_queue_size)
        self._admission: AdmissionPort = admission or AdmissionController(heavy_slots)
        self._scope = RunScope()
        self._workers: list[asyncio.Task[None]] = []
        self._state = PoolState.CREATED
        self._accepting = True
        self._hard_stop = False
        self._results_closed = asyncio.Event()
        self._stopped = asyncio.Event()

        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._dropped = 0
        self._discarded = 0

    @classmethod
    def from_config(cls, config: CheckConfig) -> WorkerPool:
        return cls(
            workers=config.workers,
            queue_size=config.queue_size,
            result_queue_size=config.result_queue_size,
            heavy_slots=config.heavy_max_concurrent,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def scope(self) -> RunScope:
        return self._scope

    @property
    def admission(self) -> AdmissionPort:
        return self._admission

    def stats(self) -> dict[str, int]:
        return {
            "workers": self._worker_count,
            "submitted": self._submitted,
            "completed": self._completed,
            "failed": self._failed,
            "dropped": self._dropped,
            "discarded": self._discarded,
            "queued": self._queue.qsize(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the worker coroutines. No-op unless the pool is CREATED."""
        if self._state is not PoolState.CREATED:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"share-worker-{i}")
            for i in range(self._worker_count)
        ]
        self._state = PoolState.STARTED
        log.info(
            "worker_pool_started",
            workers=self._worker_count,
            **self._admission.snapshot(),
        )

    def submit(self, task: Task) -> bool:
        """Enqueue *task* without blocking.

        Returns False when the queue is full or the pool no longer
        accepts work; retrying is the caller's job.
        """
        if not self._accepting:
            log.debug("task_rejected_closed", task_id=task.task_id)
            return False
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            return False
        self._submitted += 1
        return True

    async def wait(self) -> None:
        """Stop accepting work, let workers drain the queue, close results."""
        if self._state in (PoolState.STOPPING, PoolState.STOPPED):
            await self._stopped.wait()
            return
        if self._state is PoolState.CREATED:
            self.start()

        self._state = PoolState.STOPPING
        self._accepting = False
        feeder = asyncio.create_task(self._feed_sentinels())
        try:
            await asyncio.gather(*self._workers, return_exceptions=True)
        finally:
            feeder.cancel()

        if not self._hard_stop:
            leftover = self._discard_queued()
            if leftover:
                log.warning("worker_pool_workers_exited", unprocessed=leftover)
            self._finish(reason="workers_exited" if leftover else "drained")
        await self._stopped.wait()

    async def stop(self) -> None:
        """Cancel in-flight work, discard queued tasks, close results."""
        if self._hard_stop or self._state is PoolState.STOPPED:
            await self._stopped.wait()
            return

        self._hard_stop = True
        self._state = PoolState.STOPPING
        self._accepting = False
        self._scope.cancel()

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)

        self._discard_queued()
        self._finish(reason="stopped")

    def _discard_queued(self) -> int:
        """Empty the task queue; return how many real tasks were dropped."""
        dropped = 0
        while not self._queue.empty():
            if self._queue.get_nowait() is not _SENTINEL:
                dropped += 1
        self._discarded += dropped
        return dropped

    def _finish(self, *, reason: str) -> None:
        self._results_closed.set()
        self._state = PoolState.STOPPED
        self._stopped.set()
        log.info("worker_pool_stopped", reason=reason, **self.stats())

    async def _feed_sentinels(self) -> None:
        for _ in self._workers:
            await self._queue.put(_SENTINEL)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def results(self) -> AsyncIterator[TaskOutcome]:
        """Yield outcomes as they complete; ends once the pool is torn down.

        Completion order is not submission order; correlate through
        ``outcome.task.task_id``.
        """
        while True:
            if self._results_closed.is_set():
                while not self._results.empty():
                    yield self._results.get_nowait()
                return

            getter = asyncio.ensure_future(self._results.get())
            closed = asyncio.ensure_future(self._results_closed.wait())
            try:
                await asyncio.wait({getter, closed}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closed.cancel()
                if not getter.done():
                    getter.cancel()

            if getter.done() and not getter.cancelled():
                yield getter.result()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(self, index: int) -> None:
        while True:
            item = await self._queue.get()
            if item is _SENTINEL:
                return
            if self._scope.cancelled:
                self._discarded += 1
                return
            outcome = await self._execute(item)
            await self._deliver(outcome)

    async def _execute(self, task: Task) -> TaskOutcome:
        """Run one task body; exceptions become a failed outcome, not a dead worker."""
        try:
            async with self._admission.admit(task.weight):
                value = await task.func(self._scope)
        except asyncio.CancelledError as exc:
            current = asyncio.current_task()
            if self._scope.cancelled or (current is not None and current.cancelling()):
                raise
            # Raised by the body itself; the worker is not being torn down
            self._failed += 1
            log.warning("task_cancelled_itself", task_id=task.task_id, url=task.url)
            return TaskOutcome(task=task, error=exc)
        except Exception as exc:  # noqa: BLE001
            self._failed += 1
            log.exception("task_failed", task_id=task.task_id, url=task.url)
            return TaskOutcome(task=task, error=exc)
        self._completed += 1
        return TaskOutcome(task=task, value=value)

    async def _deliver(self, outcome: TaskOutcome) -> None:
        if self._scope.cancelled:
            self._dropped += 1
            log.info("task_result_dropped", task_id=outcome.task.task_id)
            return
        try:
            await self._results.put(outcome)
        except asyncio.CancelledError:
            self._dropped += 1
            log.info("task_result_dropped", task_id=outcome.task.task_id)
            raise

"""Batch check use case: chunked submission, progress tracking, cooperative stop.

Every input URL ends with exactly one result: the check outcome, a
MALFORMED "task submission failed" when the pool stayed full through
every retry, STOPPED when the run was halted first, or CANCELLED when
the check cancelled itself without the pool being stopped.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Sequence

import structlog

from sharesniffer.domain.entities.check import CheckResult, Outcome
from sharesniffer.domain.ports import LinkAdapterPort, RunScopePort, Task, TaskBody, WorkerPoolPort

log = structlog.get_logger(__name__)

SUBMISSION_FAILED = "task submission failed"


class StopSignal:
    """Broadcast stop flag; ``set()`` may be called any number of times."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


async def _sleep_or_stop(delay: float, stop: StopSignal) -> bool:
    """Sleep *delay* seconds; return True early if *stop* fires."""
    if stop.is_set:
        return True
    with suppress(TimeoutError):
        await asyncio.wait_for(stop.wait(), timeout=delay)
    return stop.is_set


# ---------------------------------------------------------------------------
# Progress table
# ---------------------------------------------------------------------------


class RowStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"


@dataclass
class ProgressRow:
    index: int
    url: str
    status: RowStatus = RowStatus.PENDING
    result: CheckResult | None = None


ProgressCallback = Callable[[ProgressRow], None]


class ProgressTable:
    """One row per input URL, written by index.

    Workers only write their own row; ``asyncio.Lock`` guards the
    operations that walk every row. A STOPPED/CANCELLED result is final
    and is never overwritten by a late check result.
    """

    def __init__(self, urls: Iterable[str]) -> None:
        self._rows = [ProgressRow(index=i, url=url) for i, url in enumerate(urls)]
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    def row(self, index: int) -> ProgressRow:
        return self._rows[index]

    def mark_running(self, index: int) -> bool:
        row = self._rows[index]
        if row.status is not RowStatus.PENDING:
            return False
        row.status = RowStatus.RUNNING
        return True

    def complete(self, index: int, result: CheckResult) -> bool:
        row = self._rows[index]
        if row.result is not None and row.result.outcome.is_terminal_stop:
            return False
        row.result = result
        row.status = RowStatus.DONE
        return True

    async def finalize(
        self,
        statuses: frozenset[RowStatus],
        make_result: Callable[[str], CheckResult],
    ) -> list[ProgressRow]:
        """Give every row in *statuses* the result *make_result* builds."""
        changed: list[ProgressRow] = []
        async with self._lock:
            for row in self._rows:
                if row.status in statuses:
                    row.result = make_result(row.url)
                    row.status = RowStatus.DONE
                    changed.append(row)
        return changed

    async def snapshot(self) -> list[ProgressRow]:
        async with self._lock:
            return [dataclasses.replace(row) for row in self._rows]

    def counts(self) -> dict[str, int]:
        out = {status.value: 0 for status in RowStatus}
        for row in self._rows:
            out[row.status.value] += 1
        return out

    def results(self) -> list[CheckResult]:
        return [
            row.result if row.result is not None else CheckResult.stopped(row.url)
            for row in self._rows
        ]


_UNFINISHED = frozenset({RowStatus.PENDING, RowStatus.RUNNING})
_RUNNING = frozenset({RowStatus.RUNNING})


@dataclass(frozen=True)
class BatchReport:
    """Results ordered like the input, plus tallies."""

    results: list[CheckResult] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    def _count(self, *outcomes: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome in outcomes)

    @property
    def valid(self) -> int:
        return self._count(Outcome.VALID)

    @property
    def invalid(self) -> int:
        return self._count(Outcome.INVALID)

    @property
    def stopped(self) -> int:
        return self._count(Outcome.STOPPED, Outcome.CANCELLED)

    @property
    def other(self) -> int:
        return self.total - self.valid - self.invalid - self.stopped

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "other": self.other,
            "stopped": self.stopped,
            "elapsed": self.elapsed_ms,
        }


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class BatchCheckUseCase:
    """Checks many URLs through a fresh worker pool per run."""

    def __init__(
        self,
        adapter: LinkAdapterPort,
        pool_factory: Callable[[], WorkerPoolPort],
        *,
        chunk_size: int = 500,
        chunk_pause: float = 0.5,
        submit_attempts: int = 5,
        submit_backoff: float = 0.3,
        drain_timeout: float | None = None,
    ) -> None:
        self._adapter = adapter
        self._pool_factory = pool_factory
        self._chunk_size = chunk_size
        self._chunk_pause = chunk_pause
        self._submit_attempts = submit_attempts
        self._submit_backoff = submit_backoff
        self._drain_timeout = drain_timeout

    async def execute(
        self,
        urls: Sequence[str],
        *,
        stop: StopSignal | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchReport:
        stop = stop or StopSignal()
        table = ProgressTable(urls)
        start = time.perf_counter()
        log.info("batch_started", total=len(table), chunk_size=self._chunk_size)

        pool = self._pool_factory()
        pool.start()
        consumer = asyncio.create_task(self._consume(pool, table, on_progress))
        watcher = asyncio.create_task(self._watch_stop(stop, pool, table, on_progress))

        timed_out = False
        try:
            async with asyncio.timeout(self._drain_timeout):
                await self._submit_all(urls, pool, table, stop, on_progress)
                if not stop.is_set:
                    await pool.wait()
        except TimeoutError:
            timed_out = True
            log.warning("batch_drain_timeout", timeout=self._drain_timeout)
        finally:
            # A watcher already past stop.wait() owns the teardown
            if stop.is_set:
                await watcher
            else:
                watcher.cancel()
            await pool.stop()
            await consumer

        if timed_out:
            expired = await table.finalize(_UNFINISHED, lambda url: _with_url(CheckResult.timeout(), url))
            self._notify_all(on_progress, expired)
        self._notify_all(on_progress, await table.finalize(_UNFINISHED, CheckResult.stopped))

        report = BatchReport(
            results=table.results(),
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        log.info("batch_finished", stopped_by_user=stop.is_set, **report.summary())
        return report

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def _submit_all(
        self,
        urls: Sequence[str],
        pool: WorkerPoolPort,
        table: ProgressTable,
        stop: StopSignal,
        on_progress: ProgressCallback | None,
    ) -> None:
        for chunk_start in range(0, len(urls), self._chunk_size):
            if chunk_start > 0 and await _sleep_or_stop(self._chunk_pause, stop):
                break
            if stop.is_set:
                break
            chunk_end = min(chunk_start + self._chunk_size, len(urls))
            for index in range(chunk_start, chunk_end):
                if stop.is_set:
                    break
                url = urls[index]
                task = Task(
                    url=url,
                    func=self._make_body(index, url, stop, table, on_progress),
                    weight=self._adapter.weight_for(url),
                    task_id=index,
                )
                if await self._submit_with_retry(pool, task, stop):
                    continue
                if stop.is_set:
                    break
                log.warning("task_submission_failed", index=index, url=url)
                if table.complete(index, CheckResult.malformed(url, SUBMISSION_FAILED)):
                    self._notify(on_progress, table.row(index))
            log.debug("batch_chunk_submitted", start=chunk_start, end=chunk_end)

        if stop.is_set:
            log.info("batch_submission_halted", submitted=pool.stats()["submitted"])

    async def _submit_with_retry(self, pool: WorkerPoolPort, task: Task, stop: StopSignal) -> bool:
        delay = self._submit_backoff
        for attempt in range(self._submit_attempts):
            if pool.submit(task):
                return True
            if attempt + 1 == self._submit_attempts:
                break
            log.debug("task_submit_retry", task_id=task.task_id, attempt=attempt + 1, delay=delay)
            if await _sleep_or_stop(delay, stop):
                return False
            delay *= 2
        return False

    def _make_body(
        self,
        index: int,
        url: str,
        stop: StopSignal,
        table: ProgressTable,
        on_progress: ProgressCallback | None,
    ) -> TaskBody:
        async def body(scope: RunScopePort) -> CheckResult:
            # Queued work reaching the front after a stop is not checked
            if stop.is_set or scope.cancelled:
                return CheckResult.stopped(url)
            if table.mark_running(index):
                self._notify(on_progress, table.row(index))
            result = await self._adapter.adapt(url)
            if stop.is_set:
                return CheckResult.stopped(url)
            return result

        return body

    # ------------------------------------------------------------------
    # Result side
    # ------------------------------------------------------------------

    async def _consume(
        self,
        pool: WorkerPoolPort,
        table: ProgressTable,
        on_progress: ProgressCallback | None,
    ) -> None:
        async for outcome in pool.results():
            index = outcome.task.task_id
            if outcome.ok:
                result = outcome.value
            elif isinstance(outcome.error, asyncio.CancelledError):
                result = CheckResult.cancelled(outcome.task.url)
            else:
                result = _with_url(CheckResult.fatal(f"task failed: {outcome.error}"), outcome.task.url)
            if table.complete(index, result):
                self._notify(on_progress, table.row(index))

    async def _watch_stop(
        self,
        stop: StopSignal,
        pool: WorkerPoolPort,
        table: ProgressTable,
        on_progress: ProgressCallback | None,
    ) -> None:
        await stop.wait()
        relabeled = await table.finalize(_RUNNING, CheckResult.stopped)
        self._notify_all(on_progress, relabeled)
        log.info("batch_stop_requested", relabeled=len(relabeled))
        await pool.stop()

    @staticmethod
    def _notify(on_progress: ProgressCallback | None, row: ProgressRow) -> None:
        if on_progress is None:
            return
        try:
            on_progress(row)
        except Exception:  # noqa: BLE001
            log.warning("batch_progress_callback_error", index=row.index, exc_info=True)

    def _notify_all(self, on_progress: ProgressCallback | None, rows: list[ProgressRow]) -> None:
        for row in rows:
            self._notify(on_progress, row)


def _with_url(result: CheckResult, url: str) -> CheckResult:
    return dataclasses.replace(result, url=url)


def parse_links(lines: Iterable[str]) -> list[str]:
    """Keep non-blank lines that are not ``#`` comments, stripped."""
    links: list[str] = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            links.append(line)
    return links

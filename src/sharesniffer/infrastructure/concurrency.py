"""Weighted admission control for the worker pool.

Two independent ceilings bound concurrent work:

* the worker count bounds how many tasks run at all;
* the heavy semaphore bounds how many HEAVY tasks (browser sessions)
  run at once, regardless of how many NORMAL tasks are in flight.

A task declares its weight at submission; the pool never inspects URLs.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from sharesniffer.domain.ports.concurrency import Weight

log = structlog.get_logger(__name__)


class AdmissionController:
    """Grants slots per weight class.

    NORMAL tasks pass straight through; HEAVY tasks hold one slot of the
    heavy semaphore for the whole block and release it on every exit
    path, including cancellation.
    """

    def __init__(self, heavy_slots: int = 2) -> None:
        if heavy_slots < 1:
            raise ValueError("heavy_slots must be >= 1")
        self._heavy_slots = heavy_slots
        self._heavy_sem = asyncio.Semaphore(heavy_slots)
        self._heavy_active = 0
        self._heavy_peak = 0

    @property
    def heavy_slots(self) -> int:
        return self._heavy_slots

    @property
    def heavy_active(self) -> int:
        return self._heavy_active

    @property
    def heavy_peak(self) -> int:
        """Highest number of HEAVY tasks observed running at once."""
        return self._heavy_peak

    @asynccontextmanager
    async def admit(self, weight: Weight) -> AsyncIterator[None]:
        if weight is not Weight.HEAVY:
            yield
            return

        if self._heavy_sem.locked():
            log.debug("heavy_slot_wait", heavy_active=self._heavy_active)
        async with self._heavy_sem:
            self._heavy_active += 1
            self._heavy_peak = max(self._heavy_peak, self._heavy_active)
            try:
                yield
            finally:
                self._heavy_active -= 1

    def snapshot(self) -> dict[str, int]:
        """Return current admission state for diagnostics."""
        return {
            "heavy_slots": self._heavy_slots,
            "heavy_active": self._heavy_active,
            "heavy_available": self._heavy_slots - self._heavy_active,
            "heavy_peak": self._heavy_peak,
        }

"""Admission control port for weighted task execution."""

from __future__ import annotations

from enum import Enum
from typing import AsyncContextManager, Protocol, runtime_checkable


class Weight(Enum):
    """Weight class a task declares when it is submitted."""

    NORMAL = "normal"  # one worker slot
    HEAVY = "heavy"  # one worker slot plus one heavy slot


@runtime_checkable
class AdmissionPort(Protocol):
    """Bounds how much concurrent work of a given weight may run at once."""

    def admit(self, weight: Weight) -> AsyncContextManager[None]:
        """Hold the slots *weight* requires for the duration of the block."""
        ...

    def snapshot(self) -> dict[str, int]:
        """Slot counters for diagnostics."""
        ...

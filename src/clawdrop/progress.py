"""Progress reporting for transfer phases.

The orchestrator never touches UI state. It feeds completion events into a
ProgressAggregator, which is the only place running totals and throughput
are updated, and the aggregator forwards snapshots to an injected observer.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol


class Phase(str, Enum):
    """Transfer phase being reported."""

    UPLOAD = "upload"
    DELETE = "delete"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time view of a phase."""

    phase: Phase
    done: int                   # bytes for uploads, objects for deletes
    total: int
    completed: int              # finished operations
    bytes_per_second: Optional[float] = None


class TransferObserver(Protocol):
    """Progress reporting interface."""

    def on_phase_start(self, phase: Phase, total: int) -> None:
        """Called before the first operation of a phase."""
        ...

    def on_progress(self, snapshot: ProgressSnapshot) -> None:
        """Called once per completed operation."""
        ...

    def on_phase_end(self, phase: Phase) -> None:
        """Called after the last operation of a phase succeeded."""
        ...


class NullObserver:
    """Observer that ignores everything."""

    def on_phase_start(self, phase: Phase, total: int) -> None:
        pass

    def on_progress(self, snapshot: ProgressSnapshot) -> None:
        pass

    def on_phase_end(self, phase: Phase) -> None:
        pass


class ProgressAggregator:
    """Single-writer running totals for one phase.

    Not thread-safe by contract: exactly one consumer loop calls record().
    """

    def __init__(
        self,
        phase: Phase,
        total: int,
        observer: Optional[TransferObserver] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.phase = phase
        self.total = total
        self.observer = observer or NullObserver()
        self._clock = clock
        self._started = clock()
        self.done = 0
        self.completed = 0

    def start(self) -> None:
        """Announce the phase and reset the throughput clock."""
        self._started = self._clock()
        self.observer.on_phase_start(self.phase, self.total)

    def record(self, amount: int) -> ProgressSnapshot:
        """Account for one finished operation."""
        self.done += amount
        self.completed += 1
        snapshot = self.snapshot()
        self.observer.on_progress(snapshot)
        return snapshot

    def snapshot(self) -> ProgressSnapshot:
        elapsed = self._clock() - self._started
        speed = self.done / elapsed if elapsed > 0 else None
        return ProgressSnapshot(
            phase=self.phase,
            done=self.done,
            total=self.total,
            completed=self.completed,
            bytes_per_second=speed,
        )

    def finish(self) -> None:
        self.observer.on_phase_end(self.phase)

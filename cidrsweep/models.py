from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Optional


@dataclass(slots=True, frozen=True)
class ProbeOutcome:
    address: str
    reachable: bool
    output: Optional[str] = None


@dataclass(slots=True, frozen=True)
class CounterSnapshot:
    reachable: int = 0
    unreachable: int = 0

    @property
    def total(self) -> int:
        return self.reachable + self.unreachable

    @property
    def percent_reachable(self) -> Optional[float]:
        if self.total == 0:
            return None
        return 100.0 * self.reachable / self.total


class SweepCounters:
    """Reachable/unreachable tallies shared by the workers and the reporter.

    All mutation goes through :meth:`increment`, which holds the lock for the
    read-modify-write. :meth:`snapshot` returns an immutable copy so readers
    never see a half-updated pair.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._reachable = 0
        self._unreachable = 0

    def increment(self, reachable: bool) -> None:
        with self._lock:
            if reachable:
                self._reachable += 1
            else:
                self._unreachable += 1

    def record(self, outcome: ProbeOutcome) -> None:
        self.increment(outcome.reachable)

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(reachable=self._reachable, unreachable=self._unreachable)

    @property
    def reachable(self) -> int:
        return self.snapshot().reachable

    @property
    def unreachable(self) -> int:
        return self.snapshot().unreachable

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Callable, Optional

from .errors import ConfigurationError
from .models import CounterSnapshot, SweepCounters

logger = logging.getLogger(__name__)

# Shown until at least one probe has completed.
PENDING_PERCENT = "0.00%"

Emitter = Callable[[str], None]


def format_progress(snapshot: CounterSnapshot) -> str:
    percent = snapshot.percent_reachable
    label = PENDING_PERCENT if percent is None else f"{percent:.2f}%"
    return f"{label} (Reachable: {snapshot.reachable}, Unreachable: {snapshot.unreachable})"


def log_line(line: str) -> None:
    logger.info("%s", line)


class ProgressReporter:
    """Periodically emits a progress line built from a counters snapshot.

    The reporter only reads the counters. It runs on its own daemon thread
    until :meth:`stop` is called; the final report is left to the caller via
    :meth:`report_once`.
    """

    def __init__(
        self,
        counters: SweepCounters,
        interval: float,
        emit: Optional[Emitter] = None,
    ) -> None:
        if interval <= 0:
            raise ConfigurationError(
                f"progress interval must be positive (got {interval}s).",
                config_key="progress_interval",
            )
        self.counters = counters
        self.interval = interval
        self.emit = emit or log_line
        self._stop = Event()
        self._thread: Optional[Thread] = None

    def report_once(self) -> str:
        line = format_progress(self.counters.snapshot())
        self.emit(line)
        return line

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("ProgressReporter already started")
        self._thread = Thread(target=self._run, name="cidrsweep-progress", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.report_once()
            except Exception as exc:
                logger.error("Progress report failed: %s", exc)

    def __enter__(self) -> "ProgressReporter":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

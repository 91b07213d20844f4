from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from queue import Empty
from threading import BoundedSemaphore, Event, Lock
from typing import Optional

from .addresses import AddressBlock, AddressStream, parse_block, start_enumerator
from .config import SweepConfig
from .errors import ConfigurationError
from .models import CounterSnapshot, ProbeOutcome, SweepCounters
from .ping_runner import PingRunner, Probe, safe_probe
from .reporting import Emitter, ProgressReporter, log_line
from .utils import format_duration, format_exception

logger = logging.getLogger(__name__)

# How often blocked waits wake up to look at the stop event.
_POLL_INTERVAL = 0.1


class ConcurrencyGate:
    """Fixed pool of probe slots.

    Every probe holds exactly one slot from before it is submitted until its
    outcome has been counted. ``acquire`` blocks while all slots are taken;
    ``release`` must be paired with a successful ``acquire``.
    """

    def __init__(self, slots: int) -> None:
        if slots <= 0:
            raise ConfigurationError(
                f"threads must be a positive integer (got {slots}).", config_key="threads"
            )
        self.slots = slots
        self._semaphore = BoundedSemaphore(slots)
        self._lock = Lock()
        self._in_flight = 0
        self._high_water = 0

    def acquire(self, timeout: Optional[float] = None) -> bool:
        if not self._semaphore.acquire(timeout=timeout):
            return False
        with self._lock:
            self._in_flight += 1
            if self._in_flight > self._high_water:
                self._high_water = self._in_flight
        return True

    def release(self) -> None:
        with self._lock:
            if self._in_flight == 0:
                raise RuntimeError("release() without a matching acquire()")
            self._in_flight -= 1
        self._semaphore.release()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def high_water(self) -> int:
        with self._lock:
            return self._high_water


class SweepScheduler:
    """Feeds addresses from the stream to a pool of at most ``threads`` probes.

    Outcomes land in ``counters``; with ``verbose`` each one is also passed to
    ``emit`` as an "<address> is reachable" line.
    """

    def __init__(
        self,
        stream: AddressStream,
        counters: SweepCounters,
        probe: Probe,
        threads: int,
        timeout: float,
        verbose: bool = False,
        stop_event: Optional[Event] = None,
        emit: Optional[Emitter] = None,
    ) -> None:
        if timeout <= 0:
            raise ConfigurationError(f"timeout must be positive (got {timeout}s).", config_key="timeout")
        self.gate = ConcurrencyGate(threads)
        self.stream = stream
        self.counters = counters
        self.probe = probe
        self.threads = threads
        self.timeout = timeout
        self.verbose = verbose
        self.stop_event = stop_event
        self.emit = emit or log_line
        self.dispatched = 0
        self.cancelled = False

    def run(self) -> int:
        """Probe every address from the stream and wait for all of them.

        Returns the number of probes dispatched. If the enumerator closed the
        stream with a fault, in-flight probes are drained first and the fault
        is raised afterwards.
        """
        try:
            with ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="cidrsweep-probe") as pool:
                while True:
                    if not self._acquire_slot():
                        break
                    address = self._next_address()
                    if address is None:
                        self.gate.release()
                        break
                    try:
                        future = pool.submit(self._probe_address, address)
                    except BaseException:
                        self.gate.release()
                        raise
                    future.add_done_callback(self._log_worker_failure)
                    self.dispatched += 1
        except BaseException:
            # unblock the producer if we are bailing out
            self.stream.cancel()
            raise

        error = self.stream.error
        if error is not None:
            logger.error("Sweep aborted after %d probes: %s", self.dispatched, error)
            raise error
        return self.dispatched

    def _acquire_slot(self) -> bool:
        if self.stop_event is None:
            return self.gate.acquire()
        while not self.gate.acquire(timeout=_POLL_INTERVAL):
            if self._should_stop():
                self._cancel()
                return False
        return True

    def _next_address(self) -> Optional[str]:
        wait = None if self.stop_event is None else _POLL_INTERVAL
        while True:
            if self._should_stop():
                self._cancel()
                return None
            try:
                return self.stream.get(timeout=wait)
            except Empty:
                continue

    def _probe_address(self, address: str) -> ProbeOutcome:
        try:
            outcome = safe_probe(self.probe, address, self.timeout)
            self.counters.record(outcome)
        finally:
            self.gate.release()

        if self.verbose:
            self.emit(f"{address} is {'reachable' if outcome.reachable else 'not reachable'}")
        return outcome

    def _should_stop(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _cancel(self) -> None:
        if not self.cancelled:
            logger.info("Stop requested. Waiting for %d in-flight probes.", self.gate.in_flight)
            self.cancelled = True
        self.stream.cancel()

    @staticmethod
    def _log_worker_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Unhandled error in probe worker: %s", format_exception(exc))


@dataclass(slots=True)
class SweepResult:
    block: AddressBlock
    counters: CounterSnapshot
    dispatched: int
    cancelled: bool
    elapsed: float


class SweepManager:
    """Runs one sweep: enumerator, scheduler and progress reporter together.

    The configuration and the CIDR block are checked here, so a bad block is
    reported before any stream or worker exists.
    """

    def __init__(
        self,
        config: SweepConfig,
        probe: Optional[Probe] = None,
        emit: Optional[Emitter] = None,
    ) -> None:
        config.validate()
        self.config = config
        self.block = parse_block(config.cidr)
        self.probe = probe if probe is not None else PingRunner()
        self.emit = emit
        self.counters = SweepCounters()

    def run(self) -> SweepResult:
        config = self.config
        logger.info(
            "Starting sweep for CIDR range %s (%d addresses, %d threads, timeout %s).",
            self.block.cidr,
            self.block.size,
            config.threads,
            format_duration(config.timeout),
        )

        stream = AddressStream(config.buffer_size)
        scheduler = SweepScheduler(
            stream=stream,
            counters=self.counters,
            probe=self.probe,
            threads=config.threads,
            timeout=config.timeout,
            verbose=config.verbose,
            stop_event=config.stop_event,
            emit=self.emit,
        )
        reporter = ProgressReporter(self.counters, config.progress_interval, self.emit)

        started = time.monotonic()
        producer = start_enumerator(self.block, stream)
        reporter.start()
        try:
            dispatched = scheduler.run()
        finally:
            reporter.stop()
            reporter.report_once()
        producer.join()

        result = SweepResult(
            block=self.block,
            counters=self.counters.snapshot(),
            dispatched=dispatched,
            cancelled=scheduler.cancelled,
            elapsed=time.monotonic() - started,
        )
        if result.cancelled:
            logger.warning(
                "Sweep of %s stopped early: %d of %d addresses probed.",
                self.block.cidr,
                result.dispatched,
                self.block.size,
            )
        logger.info("Sweep of %s finished in %.2fs.", self.block.cidr, result.elapsed)
        return result

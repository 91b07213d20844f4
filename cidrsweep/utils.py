from __future__ import annotations

import logging
import math
import re
import signal
import sys
from threading import Event, Lock
from typing import Optional, TextIO

_INTERRUPT_LOCK = Lock()
_INTERRUPT_EVENT: Optional[Event] = None

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class _ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, datefmt: Optional[str], use_color: bool) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color and record.levelno in self.COLORS:
            color = self.COLORS[record.levelno]
            original_levelname = record.levelname
            record.levelname = f"{color}{original_levelname}{self.RESET}"
            try:
                return super().format(record)
            finally:
                record.levelname = original_levelname
        return super().format(record)


def configure_logging(level: str = "info", stream: Optional[TextIO] = None) -> None:
    """Send diagnostics to ``stream`` (stderr by default), leaving stdout for sweep output."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    formatter = _ColorFormatter(
        fmt="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        use_color=handler.stream.isatty(),
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def parse_duration(value: str) -> float:
    """Parse ``300ms``, ``1.5s``, ``1m30s`` or a bare number of seconds."""
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    return f"{seconds:g}s"


def _signal_handler(signum, frame):  # type: ignore[override]
    assert _INTERRUPT_EVENT is not None  # set up in setup_interrupt_handling
    with _INTERRUPT_LOCK:
        if _INTERRUPT_EVENT.is_set():
            print("\n[!] Repeated interrupt. Exiting immediately.", file=sys.stderr)
            raise KeyboardInterrupt

        _INTERRUPT_EVENT.set()
        print(
            "\n[!] Interrupt received. Waiting for in-flight probes (Ctrl-C again to abort)...",
            file=sys.stderr,
        )


def setup_interrupt_handling() -> Event:
    global _INTERRUPT_EVENT
    if _INTERRUPT_EVENT is None:
        _INTERRUPT_EVENT = Event()
        signal.signal(signal.SIGINT, _signal_handler)
    return _INTERRUPT_EVENT


def format_exception(exc: BaseException) -> str:
    return f"{exc.__class__.__name__}: {exc}"

from __future__ import annotations

from dataclasses import dataclass
from threading import Event
from typing import Optional

from .errors import ConfigurationError

DEFAULT_THREADS = 500
DEFAULT_TIMEOUT = 0.3
DEFAULT_PROGRESS_INTERVAL = 1.0
DEFAULT_BUFFER_SIZE = 100


@dataclass(slots=True)
class SweepConfig:
    cidr: str
    timeout: float = DEFAULT_TIMEOUT
    threads: int = DEFAULT_THREADS
    verbose: bool = False
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    buffer_size: int = DEFAULT_BUFFER_SIZE
    stop_event: Optional[Event] = None  # resolved at runtime

    def validate(self) -> None:
        if not self.cidr or not self.cidr.strip():
            raise ConfigurationError("A CIDR block is required.", config_key="cidr")
        if self.threads <= 0:
            raise ConfigurationError(
                f"threads must be a positive integer (got {self.threads}).",
                config_key="threads",
            )
        if self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be positive (got {self.timeout}s).",
                config_key="timeout",
            )
        if self.progress_interval <= 0:
            raise ConfigurationError(
                f"progress interval must be positive (got {self.progress_interval}s).",
                config_key="progress_interval",
            )
        if self.buffer_size <= 0:
            raise ConfigurationError(
                f"buffer size must be positive (got {self.buffer_size}).",
                config_key="buffer_size",
            )

"""
Pytest configuration and fixtures for cidrsweep tests
"""

import threading
import time
from typing import Callable, List, Optional

import pytest

from cidrsweep.models import ProbeOutcome


class StubProbe:
    """Synthetic probe that records how many calls overlap."""

    def __init__(self, decide: Callable[[str], bool], delay: float = 0.0):
        self.decide = decide
        self.delay = delay
        self.calls: List[str] = []
        self.high_water = 0
        self._active = 0
        self._lock = threading.Lock()

    def __call__(self, address: str, timeout: float) -> ProbeOutcome:
        with self._lock:
            self.calls.append(address)
            self._active += 1
            self.high_water = max(self.high_water, self._active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return ProbeOutcome(address=address, reachable=self.decide(address))
        finally:
            with self._lock:
                self._active -= 1


class FaultyBlock:
    """Stands in for an AddressBlock whose iteration breaks part way."""

    cidr = "10.9.9.0/29"
    size = 8

    def __init__(self, good: int = 3, exc: Optional[Exception] = None):
        self.good = good
        self.exc = exc or ValueError("corrupt address range")

    def addresses(self):
        for index in range(self.good):
            yield f"10.9.9.{index}"
        raise self.exc


def last_octet_is_even(address: str) -> bool:
    return int(address.rsplit(".", 1)[-1]) % 2 == 0


@pytest.fixture
def stub_probe_factory():
    return StubProbe


@pytest.fixture
def unreachable_probe():
    return StubProbe(lambda address: False)


@pytest.fixture
def alternating_probe():
    return StubProbe(last_octet_is_even)


@pytest.fixture
def faulty_block():
    return FaultyBlock()


@pytest.fixture
def emitted():
    lines: List[str] = []
    return lines

from __future__ import annotations

import ipaddress
import logging
from collections import deque
from dataclasses import dataclass
from queue import Empty
from threading import Condition, Thread
from typing import Deque, Iterator, Optional, Union

from .config import DEFAULT_BUFFER_SIZE
from .errors import ConfigurationError, EnumerationFault

logger = logging.getLogger(__name__)

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(slots=True, frozen=True)
class AddressBlock:
    network: IPNetwork

    @property
    def cidr(self) -> str:
        return self.network.with_prefixlen

    @property
    def size(self) -> int:
        # network and broadcast addresses are part of the sweep
        return self.network.num_addresses

    def addresses(self) -> Iterator[str]:
        for address in self.network:
            yield str(address)

    def __iter__(self) -> Iterator[str]:
        return self.addresses()

    def __contains__(self, address: object) -> bool:
        try:
            return ipaddress.ip_address(address) in self.network  # type: ignore[arg-type]
        except ValueError:
            return False


def parse_block(cidr: str) -> AddressBlock:
    text = (cidr or "").strip()
    if not text:
        raise ConfigurationError("A CIDR block is required.", config_key="cidr")
    try:
        network = ipaddress.ip_network(text, strict=False)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid CIDR block {cidr!r}: {exc}", config_key="cidr") from exc

    if ipaddress.ip_interface(text).ip != network.network_address:
        logger.warning(
            "Host bits set in %s; sweeping the enclosing block %s instead.",
            text,
            network.with_prefixlen,
        )
    return AddressBlock(network)


class AddressStream:
    """Bounded hand-off of addresses from one producer to the scheduler.

    ``put`` blocks while the buffer is full, which throttles the enumerator to
    the pace of the pool. ``close`` may be called once; afterwards ``get``
    drains what is left and then returns ``None``. ``cancel`` is the consumer
    side escape hatch: buffered addresses are dropped and a blocked ``put``
    returns ``False``.
    """

    def __init__(self, maxsize: int = DEFAULT_BUFFER_SIZE) -> None:
        if maxsize <= 0:
            raise ConfigurationError(
                f"buffer size must be positive (got {maxsize}).", config_key="buffer_size"
            )
        self.maxsize = maxsize
        self._buffer: Deque[str] = deque()
        self._cond = Condition()
        self._closed = False
        self._cancelled = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def cancelled(self) -> bool:
        with self._cond:
            return self._cancelled

    @property
    def error(self) -> Optional[BaseException]:
        with self._cond:
            return self._error

    def put(self, address: str) -> bool:
        with self._cond:
            while len(self._buffer) >= self.maxsize and not self._cancelled:
                self._cond.wait()
            if self._cancelled:
                return False
            if self._closed:
                raise RuntimeError("put() on a closed AddressStream")
            self._buffer.append(address)
            self._cond.notify_all()
            return True

    def close(self, error: Optional[BaseException] = None) -> bool:
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._error = error
            self._cond.notify_all()
            return True

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._buffer.clear()
            self._cond.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Return the next address, or ``None`` once the stream is finished.

        Raises :class:`queue.Empty` if ``timeout`` elapses while the stream is
        still open and empty.
        """
        with self._cond:
            if not self._cond.wait_for(self._ready, timeout=timeout):
                raise Empty
            if self._buffer:
                address = self._buffer.popleft()
                self._cond.notify_all()
                return address
            return None

    def _ready(self) -> bool:
        return bool(self._buffer) or self._closed or self._cancelled

    def __iter__(self) -> Iterator[str]:
        while True:
            address = self.get()
            if address is None:
                return
            yield address


def enumerate_into(block: AddressBlock, stream: AddressStream) -> int:
    produced = 0
    error: Optional[EnumerationFault] = None
    try:
        for address in block.addresses():
            if not stream.put(address):
                logger.debug("Address stream cancelled after %d addresses.", produced)
                break
            produced += 1
    except Exception as exc:
        logger.error("Enumeration of %s failed after %d addresses: %s", block.cidr, produced, exc)
        error = EnumerationFault(
            f"Enumeration of {block.cidr} failed after {produced} addresses: {exc}",
            cidr=block.cidr,
        )
        error.__cause__ = exc
    finally:
        stream.close(error)
    return produced


def start_enumerator(block: AddressBlock, stream: AddressStream) -> Thread:
    thread = Thread(
        target=enumerate_into,
        args=(block, stream),
        name="cidrsweep-enumerator",
        daemon=True,
    )
    thread.start()
    return thread

from __future__ import annotations

import logging
import platform
import re
import shlex
import shutil
import subprocess
from typing import Callable, List, Optional, Union

from .models import ProbeOutcome
from .utils import format_exception

logger = logging.getLogger(__name__)

# Extra wall-clock time granted to the ping process on top of its own timeout.
DEFAULT_GRACE = 0.5

Probe = Callable[[str, float], Union[ProbeOutcome, bool]]

# Echo replies carry a TTL or round-trip time; ICMP errors relayed by a router do not.
_ECHO_MARKER = re.compile(r"\b(?:ttl|time)[=<]", re.IGNORECASE)


def reply_from_target(address: str, output: str) -> bool:
    """Return True if ``output`` holds an echo reply sent by ``address`` itself."""
    source = re.compile(
        rf"\bfrom\s+(?:\S+\s+\()?{re.escape(address)}\)?(?=[:\s,]|$)",
        re.IGNORECASE,
    )
    for line in output.splitlines():
        if source.search(line) and _ECHO_MARKER.search(line):
            return True
    return False


class PingRunner:
    """Single echo-request probe backed by the system ``ping`` binary."""

    def __init__(
        self,
        binary: str = "ping",
        grace: float = DEFAULT_GRACE,
        system: Optional[str] = None,
    ) -> None:
        self.binary = binary
        self.grace = grace
        self.system = (system or platform.system()).lower()

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def build_command(self, address: str, timeout: float) -> List[str]:
        millis = max(int(round(timeout * 1000)), 1)
        if self.system == "windows":
            return [self.binary, "-n", "1", "-w", str(millis), address]
        if self.system == "darwin" or "bsd" in self.system:
            # BSD ping takes -W in milliseconds
            return [self.binary, "-c", "1", "-W", str(millis), address]
        return [self.binary, "-c", "1", "-W", f"{timeout:.2f}", address]

    def __call__(self, address: str, timeout: float) -> ProbeOutcome:
        command = self.build_command(address, timeout)
        logger.debug("Ping cmd: %s", " ".join(shlex.quote(part) for part in command))
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout + self.grace,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("[%s] ping exceeded %.2fs, treating as unreachable.", address, timeout + self.grace)
            return ProbeOutcome(address=address, reachable=False)
        except OSError as exc:
            logger.debug("[%s] ping could not be executed: %s", address, exc)
            return ProbeOutcome(address=address, reachable=False, output=str(exc))

        output = result.stdout or ""
        if result.returncode != 0:
            logger.debug("[%s] ping exited with %s.", address, result.returncode)
            return ProbeOutcome(address=address, reachable=False, output=output or None)

        # Windows ping exits 0 on "Destination host unreachable" relayed by a gateway.
        if not reply_from_target(address, output):
            logger.debug("[%s] no echo reply from the target in ping output.", address)
            return ProbeOutcome(address=address, reachable=False, output=output or None)
        return ProbeOutcome(address=address, reachable=True, output=output)


def safe_probe(probe: Probe, address: str, timeout: float) -> ProbeOutcome:
    """Run ``probe`` and fold any failure into an unreachable outcome."""
    try:
        outcome = probe(address, timeout)
    except Exception as exc:
        logger.debug("[%s] probe raised %s", address, format_exception(exc))
        return ProbeOutcome(address=address, reachable=False, output=format_exception(exc))

    if isinstance(outcome, bool):
        return ProbeOutcome(address=address, reachable=outcome)
    return outcome

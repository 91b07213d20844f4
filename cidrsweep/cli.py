from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import DEFAULT_PROGRESS_INTERVAL, DEFAULT_THREADS, DEFAULT_TIMEOUT, SweepConfig
from .errors import ConfigurationError, EnumerationFault
from .ping_runner import PingRunner
from .scanner import SweepManager
from .utils import (
    configure_logging,
    format_duration,
    format_exception,
    parse_duration,
    setup_interrupt_handling,
)

logger = logging.getLogger("cidrsweep.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _print_line(line: str) -> None:
    print(line, flush=True)


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cidrsweep",
        description="Ping every address of a CIDR block and report how many answered.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--cidr",
        required=True,
        help=(
            "Address range to sweep in CIDR notation, e.g. 1.2.0.0/16. "
            "Only the prefix bits should be set in the address."
        ),
    )
    parser.add_argument(
        "-t",
        "--threads",
        type=int,
        default=DEFAULT_THREADS,
        help="Maximum number of probes in flight at once.",
    )
    parser.add_argument(
        "--timeout",
        type=_duration,
        default=format_duration(DEFAULT_TIMEOUT),
        help="How long to wait for each reply (e.g. 300ms, 1s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log the result of every probe.",
    )
    parser.add_argument(
        "--progress-freq",
        dest="progress_freq",
        type=_duration,
        default=format_duration(DEFAULT_PROGRESS_INTERVAL),
        help="How often to print sweep progress.",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Log level.",
    )
    return parser


def run_sweep(args: argparse.Namespace) -> int:
    configure_logging(args.log_level)

    config = SweepConfig(
        cidr=args.cidr,
        timeout=args.timeout,
        threads=args.threads,
        verbose=args.verbose,
        progress_interval=args.progress_freq,
    )
    runner = PingRunner()
    try:
        manager = SweepManager(config, probe=runner, emit=_print_line)
    except ConfigurationError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return EXIT_USAGE

    if not runner.is_available():
        logger.warning("'%s' was not found in PATH; every address will be reported unreachable.", runner.binary)

    config.stop_event = setup_interrupt_handling()

    try:
        manager.run()
    except EnumerationFault as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\n[!] Sweep aborted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as exc:  # pragma: no cover - defensive
        print(f"[!] Unexpected error: {format_exception(exc)}", file=sys.stderr)
        return EXIT_FAILURE

    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return run_sweep(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

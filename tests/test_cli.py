import logging
import threading

import pytest

from cidrsweep import cli
from cidrsweep.errors import EnumerationFault
from cidrsweep.models import ProbeOutcome
from cidrsweep.utils import configure_logging


class FakeRunner:
    binary = "ping"

    def __init__(self, available=True):
        self.available = available
        self.calls = []

    def is_available(self):
        return self.available

    def __call__(self, address, timeout):
        self.calls.append((address, timeout))
        return ProbeOutcome(address=address, reachable=address.endswith(".1"))


@pytest.fixture
def fake_runner(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr(cli, "PingRunner", lambda: runner)
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    monkeypatch.setattr(cli, "setup_interrupt_handling", threading.Event)
    return runner


def test_successful_sweep_exits_zero(fake_runner, caplog, capsys):
    with caplog.at_level("INFO"):
        code = cli.main(["--cidr", "10.0.0.0/30", "--threads", "2", "--timeout", "150ms", "--progress-freq", "5s"])

    assert code == cli.EXIT_OK
    assert sorted(address for address, _ in fake_runner.calls) == ["10.0.0.0", "10.0.0.1", "10.0.0.2", "10.0.0.3"]
    assert all(timeout == pytest.approx(0.15) for _, timeout in fake_runner.calls)
    assert capsys.readouterr().out.splitlines()[-1] == "25.00% (Reachable: 1, Unreachable: 3)"
    assert "Starting sweep for CIDR range 10.0.0.0/30" in caplog.text


def test_verbose_flag_prints_per_address(fake_runner, capsys):
    cli.main(["-c", "10.0.0.0/31", "-v"])

    out = capsys.readouterr().out
    assert "10.0.0.1 is reachable" in out
    assert "10.0.0.0 is not reachable" in out


@pytest.fixture
def real_logging(monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.setattr(cli, "configure_logging", configure_logging)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


def test_final_report_printed_at_quiet_log_level(fake_runner, real_logging, capsys):
    code = cli.main(["--cidr", "10.0.0.0/30", "--log-level", "warning", "-v"])

    captured = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert captured.out.splitlines()[-1] == "25.00% (Reachable: 1, Unreachable: 3)"
    assert "10.0.0.1 is reachable" in captured.out
    assert "Starting sweep" not in captured.out + captured.err


def test_invalid_cidr_exits_with_usage_error(fake_runner, capsys):
    code = cli.main(["--cidr", "not-a-cidr"])

    assert code == cli.EXIT_USAGE
    assert "Invalid CIDR block" in capsys.readouterr().err
    assert fake_runner.calls == []


def test_zero_threads_rejected(fake_runner, capsys):
    code = cli.main(["--cidr", "10.0.0.0/30", "--threads", "0"])

    assert code == cli.EXIT_USAGE
    assert "threads" in capsys.readouterr().err
    assert fake_runner.calls == []


def test_bad_duration_is_argparse_error(fake_runner):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--cidr", "10.0.0.0/30", "--timeout", "soon"])
    assert excinfo.value.code == 2


def test_missing_cidr_is_argparse_error(fake_runner):
    with pytest.raises(SystemExit):
        cli.main([])


def test_missing_ping_binary_warns(fake_runner, caplog):
    fake_runner.available = False
    with caplog.at_level("WARNING"):
        code = cli.main(["--cidr", "10.0.0.1/32"])
    assert code == cli.EXIT_OK
    assert "not found in PATH" in caplog.text


def test_enumeration_fault_exits_with_failure(fake_runner, monkeypatch, capsys):
    def explode(self):
        raise EnumerationFault("range went away", cidr="10.0.0.0/30")

    monkeypatch.setattr(cli.SweepManager, "run", explode)

    assert cli.main(["--cidr", "10.0.0.0/30"]) == cli.EXIT_FAILURE
    assert "range went away" in capsys.readouterr().err


def test_forced_interrupt_exit_code(fake_runner, monkeypatch):
    def interrupted(self):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli.SweepManager, "run", interrupted)

    assert cli.main(["--cidr", "10.0.0.0/30"]) == cli.EXIT_INTERRUPTED

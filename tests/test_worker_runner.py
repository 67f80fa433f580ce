import argparse
import threading
import time
from pathlib import Path
from urllib import request as urlreq

import pytest

from netsmog.catalogue.model import Catalogue
from netsmog.cli import main, parse_args
from netsmog.errors import ConfigError, TransportError
from netsmog.util.exit_codes import ExitCode
from netsmog.worker.client import CoordinatorClient
from netsmog.worker.runner import WorkerRunner, read_secret
from test_worker_client import URL, _bridge, _coordinator


class _FixedProber:
    def __init__(self):
        self.calls = 0

    def probe(self, host, timeout=None):
        self.calls += 1
        return 0.002


class _StubClient:
    url = URL
    worker = "w1"

    def __init__(self, catalogue=None, error=None):
        self.catalogue = catalogue
        self.error = error

    def fetch_assignment(self):
        if self.error is not None:
            raise self.error
        return self.catalogue

    def submit(self, batch):
        pass


def _args(tmp_path: Path, **overrides) -> argparse.Namespace:
    values = dict(server=URL, worker="w1", secret=str(tmp_path / "secret"), max_probe_timeout=0.5, http_timeout=1.0)
    values.update(overrides)
    return argparse.Namespace(**values)


def test_read_secret_strips_whitespace(tmp_path: Path) -> None:
    path = tmp_path / "secret"
    path.write_text("  s1\n", encoding="utf-8")
    assert read_secret(path) == "s1"


def test_read_secret_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        read_secret(tmp_path / "missing")
    empty = tmp_path / "empty"
    empty.write_text("\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        read_secret(empty)


def test_unreadable_secret_exit_code(tmp_path: Path) -> None:
    assert WorkerRunner(_args(tmp_path)).run() == ExitCode.SECRETS_UNREADABLE


def test_failed_assignment_fetch_exit_code(tmp_path: Path) -> None:
    runner = WorkerRunner(_args(tmp_path), client=_StubClient(error=TransportError("refused")))
    assert runner.run() == ExitCode.ASSIGNMENT_FAILED


def test_empty_assignment_exits_cleanly(tmp_path: Path) -> None:
    runner = WorkerRunner(_args(tmp_path), client=_StubClient(catalogue=Catalogue()), prober=_FixedProber())
    assert runner.run() == ExitCode.SUCCESS


def test_worker_fetches_targets_and_reports_until_stopped(tmp_path: Path, monkeypatch) -> None:
    app, store = _coordinator(tmp_path, interval=0.05)
    monkeypatch.setattr(urlreq, "urlopen", _bridge(app))
    prober = _FixedProber()
    runner = WorkerRunner(_args(tmp_path), client=CoordinatorClient(URL, "w1", "s1", rounds=4), prober=prober)

    result = []
    t = threading.Thread(target=lambda: result.append(runner.run()), daemon=True)
    t.start()
    deadline = time.monotonic() + 10.0
    while store.count("g1.t1") < 2 and time.monotonic() < deadline:
        time.sleep(0.02)
    runner.stop_event.set()
    t.join(5.0)

    assert result == [ExitCode.SUCCESS]
    assert store.count("g1.t1") >= 2
    rows = store.fetch_series("g1.t1")
    assert {row["worker"] for row in rows} == {"w1"}
    assert {row["value"] for row in rows} == {2.0}
    assert store.count("g2.t2") == 0


def test_cli_parses_durations() -> None:
    args = parse_args(["--server", URL, "--secret", "/tmp/s", "--worker", "w9",
                       "--max-probe-timeout", "500ms", "--http-timeout", "1m"])
    assert args.worker == "w9"
    assert args.max_probe_timeout == 0.5
    assert args.http_timeout == 60.0


def test_cli_bad_arguments_exit_code() -> None:
    assert main(["--secret", "/tmp/s"]) == ExitCode.INVALID_ARGS
    assert main(["--server", URL, "--secret", "/tmp/s", "--max-probe-timeout", "0"]) == ExitCode.INVALID_ARGS

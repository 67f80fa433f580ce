"""Worker process runner: fetch the assignment once, then probe until told to stop."""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

from netsmog.errors import ConfigError, NetsmogError
from netsmog.probe.echo import EchoProber
from netsmog.util.exit_codes import ExitCode
from netsmog.util.logging import get_logger
from netsmog.worker.client import CoordinatorClient
from netsmog.worker.scheduler import WorkerScheduler

logger = get_logger(__name__)


def read_secret(path: Path) -> str:
    """Read a worker's shared secret file, stripping surrounding whitespace."""
    try:
        secret = Path(path).expanduser().read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"could not read shared secret {path}: {exc}") from exc
    if not secret:
        raise ConfigError(f"shared secret file {path} is empty")
    return secret


class WorkerRunner:
    """Bind CLI args to the coordinator client, prober and scheduler."""

    def __init__(self, args, client: Optional[CoordinatorClient] = None, prober=None):
        self.args = args
        self.stop_event = threading.Event()
        self.client = client
        self.prober = prober
        self.scheduler: Optional[WorkerScheduler] = None

    def _build_client(self) -> CoordinatorClient:
        secret = read_secret(self.args.secret)
        return CoordinatorClient(
            self.args.server,
            self.args.worker,
            secret,
            timeout=self.args.http_timeout,
        )

    def _install_signal_handlers(self) -> None:
        def _stop(signum, _frame):
            logger.info("received %s, stopping probes", signal.Signals(signum).name)
            self.stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, _stop)

    def run(self) -> int:
        try:
            client = self.client or self._build_client()
        except ConfigError as exc:
            logger.error("%s", exc)
            return ExitCode.SECRETS_UNREADABLE

        logger.info("fetching configuration from %s as %s", client.url, client.worker)
        try:
            catalogue = client.fetch_assignment()
        except NetsmogError as exc:
            logger.error("could not fetch config: %s", exc)
            return ExitCode.ASSIGNMENT_FAILED
        logger.info("assigned %d targets in %d groups", len(catalogue), len(catalogue.groups))

        prober = self.prober or EchoProber(timeout=self.args.max_probe_timeout)
        self.scheduler = WorkerScheduler(
            catalogue,
            prober,
            client.submit,
            max_probe_timeout=self.args.max_probe_timeout,
            stop_event=self.stop_event,
        )
        if not self.scheduler.loops:
            logger.warning("no ping targets assigned to %s; nothing to do", client.worker)
            return ExitCode.SUCCESS

        if threading.current_thread() is threading.main_thread():
            self._install_signal_handlers()
        self.scheduler.start()
        self.stop_event.wait()
        # In-flight probes end within their read deadline and close their sockets.
        self.scheduler.join(timeout=self.args.max_probe_timeout + 1.0)
        return ExitCode.SUCCESS


def run_worker(args) -> int:
    return WorkerRunner(args).run()

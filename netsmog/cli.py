#!/usr/bin/env python3
"""NetSmog worker CLI entrypoint (package module)."""

from __future__ import annotations

import argparse
import socket
import sys
from typing import List, Optional

from netsmog.util.duration import parse_duration_to_seconds
from netsmog.util.exit_codes import ExitCode
from netsmog.util.logging import configure_logging
from netsmog.worker.client import VERSION
from netsmog.worker.scheduler import DEFAULT_MAX_PROBE_TIMEOUT


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        prog="netsmog-worker",
        description="Fetch ping targets from a NetSmog coordinator, probe them and report latency",
    )
    p.add_argument("--server", required=True, help="Coordinator worker endpoint URL (e.g., http://smog:8080/worker)")
    p.add_argument("--secret", required=True, help="File holding this worker's shared secret")
    p.add_argument("--worker", default=socket.gethostname(), help="Worker name (default: this host's name)")
    p.add_argument(
        "--max-probe-timeout",
        dest="max_probe_timeout",
        type=parse_duration_to_seconds,
        default=DEFAULT_MAX_PROBE_TIMEOUT,
        help=f"Upper bound on one probe's reply wait, e.g. 2s or 500ms (default {DEFAULT_MAX_PROBE_TIMEOUT:g}s)",
    )
    p.add_argument(
        "--http-timeout",
        dest="http_timeout",
        type=parse_duration_to_seconds,
        default=10.0,
        help="Timeout for coordinator requests (default 10s)",
    )
    p.add_argument("--log-level", dest="log_level", default=None, help="DEBUG, INFO, WARNING or ERROR (default INFO)")
    p.add_argument("--log-json", dest="log_json", default=None, help="Also write JSON-lines logs to this file")
    p.add_argument("--version", action="version", version=f"NetSmog Worker {VERSION}")
    args = p.parse_args(argv)
    if args.max_probe_timeout is None or args.max_probe_timeout <= 0:
        p.error("--max-probe-timeout must be positive")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = parse_args(argv)
    except SystemExit as exc:
        return ExitCode.SUCCESS if exc.code == 0 else ExitCode.INVALID_ARGS
    configure_logging(level=args.log_level, json_file=args.log_json)

    from netsmog.worker.runner import run_worker

    return run_worker(args)


if __name__ == "__main__":
    sys.exit(main())

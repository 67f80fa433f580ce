"""
Coordinator process entrypoint: load config, secrets and storage, then serve.

SIGHUP reloads the config file and the secrets file. A reload that fails is
logged and the previous snapshot keeps serving.
"""
from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from netsmog.auth.secrets import SecretStore
from netsmog.catalogue.config import CatalogueHolder
from netsmog.errors import ConfigError, StorageError
from netsmog.util.exit_codes import ExitCode
from netsmog.util.logging import configure_logging, get_logger
from netsmog_web.config import CONFIG_PATH, DB_PATH
from netsmog_web.storage import SampleStore


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="netsmog-server",
        description="NetSmog coordinator: hands out ping targets and collects worker results",
    )
    ap.add_argument("--config", default=CONFIG_PATH, help=f"Config file, in TOML format (default: {CONFIG_PATH})")
    ap.add_argument("--db", default=DB_PATH, help=f"SQLite sample database (default: {DB_PATH})")
    ap.add_argument("--host", default=None, help="Bind address (default: from [main] listen)")
    ap.add_argument("--port", type=int, default=None, help="Port (default: from [main] listen)")
    ap.add_argument("--log-level", dest="log_level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    ap.add_argument("--log-json", dest="log_json", default=None, help="Also write JSON-lines logs to this file")
    return ap.parse_args(argv)


def split_listen(listen: str) -> Tuple[str, int]:
    """Split ``host:port`` (``[v6]:port`` accepted); a bare port binds all interfaces."""
    host, sep, port = listen.rpartition(":")
    if not sep:
        host, port = "0.0.0.0", listen
    host = host.strip("[]") or "0.0.0.0"
    try:
        return host, int(port)
    except ValueError:
        raise ConfigError(f"invalid listen address {listen!r}") from None


def reload_state(holder: CatalogueHolder, secrets: SecretStore) -> None:
    """Re-read the config and secrets files, installing both or neither.

    Raises:
        ConfigError: Either file is unreadable or invalid; nothing was replaced.
    """
    config = holder.read()
    fresh_secrets = secrets.read()
    holder.replace(config)
    secrets.replace(fresh_secrets)
    missing = sorted(set(config.workers) - set(secrets.workers()))
    get_logger(__name__).info(
        "reloaded %d groups, %d targets and %d worker secrets",
        len(config.catalogue.groups), len(config.catalogue), len(fresh_secrets),
    )
    if missing:
        get_logger(__name__).warning("workers without a secret: %s", ", ".join(missing))


def install_reload_handler(holder: CatalogueHolder, secrets: SecretStore) -> None:
    logger = get_logger(__name__)

    def _reload(signum, _frame):
        logger.info("received %s, reloading config", signal.Signals(signum).name)
        try:
            reload_state(holder, secrets)
        except ConfigError as exc:
            logger.error("reload failed, keeping previous config: %s", exc)

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _reload)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_file=args.log_json)
    logger = get_logger(__name__)

    try:
        holder = CatalogueHolder.from_file(Path(args.config))
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCode.CONFIG_ERROR
    config = holder.config

    if config.secrets_path is None:
        logger.error("no secrets file configured ([main] secrets)")
        return ExitCode.SECRETS_UNREADABLE
    try:
        secrets = SecretStore(config.secrets_path)
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCode.SECRETS_UNREADABLE

    try:
        store = SampleStore(args.db)
    except StorageError as exc:
        logger.error("%s", exc)
        return ExitCode.STORAGE_ERROR

    try:
        host, port = split_listen(config.listen)
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCode.CONFIG_ERROR
    host = args.host or host
    port = args.port or port

    logger.info("NetSmog instance for %s, maintained by %s", config.title, config.maintainer or "nobody")
    for name, worker in sorted(config.workers.items()):
        logger.info("worker %s: display=%s hostname=%s", name, worker.display, worker.hostname)
    missing = sorted(set(config.workers) - set(secrets.workers()))
    if missing:
        logger.warning("workers without a secret: %s", ", ".join(missing))
    for name, group in sorted(config.catalogue.groups.items()):
        logger.info("target group %s: %d targets, workers %s", name, len(group.targets),
                    list(group.membership) or "all")

    install_reload_handler(holder, secrets)

    from netsmog_web import create_app

    app = create_app(holder, secrets, store)
    logger.info("listening on %s:%d", host, port)
    try:
        app.run(host=host, port=port, threaded=True)
    except OSError as exc:
        logger.error("cannot listen on %s:%d: %s", host, port, exc)
        return ExitCode.GENERAL_ERROR
    finally:
        store.close()
    return ExitCode.SUCCESS


if __name__ == "__main__":
    sys.exit(main())

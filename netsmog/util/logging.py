"""Logging setup shared by the NetSmog coordinator and workers.

Everything logs below the ``netsmog`` logger. The console gets short
human-readable lines; ``--log-json`` adds a JSON-lines file whose records
carry the context fields below when a call site supplies them::

    logger = get_logger(__name__)
    logger.warning("error sending results", extra={"group": "core", "target": "gw"})

Per-target probe loops use :class:`TargetLogger`, which binds the group,
target and host once instead of at every call.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

ROOT = "netsmog"

CONTEXT_FIELDS = ("worker", "group", "target", "series", "host", "error_type", "duration_ms")

_configured = False
_handlers: List[logging.Handler] = []


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        out: Dict[str, Any] = {
            "ts": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        out.update({key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)})
        if record.exc_info:
            out["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(out, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[time] LEVEL [module] (thread) message``; the thread is omitted on the main thread."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<7}"
        if self.use_color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"
        module = record.name[len(ROOT) + 1:] if record.name.startswith(ROOT + ".") else record.name
        thread = "" if record.threadName == "MainThread" else f" ({record.threadName})"
        line = f"[{_record_time(record):%Y-%m-%d %H:%M:%S}] {level} [{module}]{thread} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def _resolve_level(level: Optional[str]) -> int:
    if level is None:
        if os.environ.get("NETSMOG_DEBUG", "").strip().lower() in ("1", "true", "yes"):
            level = "DEBUG"
        else:
            level = os.environ.get("NETSMOG_LOG_LEVEL", "INFO")
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
) -> None:
    """(Re)configure the ``netsmog`` logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. When omitted, NETSMOG_DEBUG=1
               selects DEBUG, else NETSMOG_LOG_LEVEL, else INFO.
        json_file: Also append JSON-lines records to this file.
        use_color: Colour console levels when stderr is a terminal.

    Handlers from an earlier call are closed and replaced.
    """
    global _configured

    numeric = _resolve_level(level)
    root = logging.getLogger(ROOT)
    root.setLevel(numeric)
    root.propagate = False

    for old in _handlers:
        root.removeHandler(old)
        old.close()
    _handlers.clear()

    _handlers.append(_handler(logging.StreamHandler(sys.stderr), numeric, ConsoleFormatter(use_color)))
    root.addHandler(_handlers[0])
    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            root.warning("cannot open JSON log file %s: %s", json_file, exc)
        else:
            _handlers.append(_handler(file_handler, numeric, JSONFormatter()))
            root.addHandler(file_handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` below the ``netsmog`` logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if name == "__main__":
        name = "main"
    if name != ROOT and not name.startswith(ROOT + "."):
        name = f"{ROOT}.{name}"
    return logging.getLogger(name)


class TargetLogger(logging.LoggerAdapter):
    """Adds ``group``, ``target``, ``series`` and ``host`` to every record of one probe loop."""

    def __init__(self, logger: logging.Logger, group: str, target: str, host: str):
        super().__init__(logger, {"group": group, "target": target, "series": f"{group}.{target}", "host": host})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def log_exception(logger: Any, message: str, *, error_type: Optional[str] = None, **extra: Any) -> None:
    """Log the exception being handled, with context fields.

    Call from inside an ``except`` block. ``logger`` may be a Logger or a
    TargetLogger.
    """
    if error_type:
        extra["error_type"] = error_type
    logger.exception(message, extra=extra)

"""Coordinator config file loading and atomic reload.

The config is a TOML document::

    [main]
    title = "Example network"
    maintainer = "noc@example.net"
    listen = "0.0.0.0:8080"
    secrets = "secrets.toml"

    [probes.ping]
    interval = 300

    [workers.www1]
    hostname = "www1.example.net"
    display = "London"

    [targets.core.meta]
    workers = ["www1"]

    [targets.core.gw]
    title = "Core gateway"
    probe = "ping"
    interval = "1m"
    count = 5
    host = "192.0.2.1"

The ``meta`` table of a target group only carries the group's worker
membership; it is lifted into ``TargetGroup.membership`` and never becomes a
target.
"""

from __future__ import annotations

import threading
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from netsmog.catalogue.model import PING, Catalogue, Target, TargetGroup
from netsmog.errors import ConfigError
from netsmog.util.duration import parse_duration_to_seconds
from netsmog.util.logging import get_logger
from netsmog.util.time import utc_now_str

logger = get_logger(__name__)

META_KEY = "meta"
DEFAULT_INTERVAL_S = 300.0
DEFAULT_COUNT = 5


@dataclass(frozen=True)
class WorkerInfo:
    name: str
    hostname: str = ""
    display: str = ""


@dataclass(frozen=True)
class CoordinatorConfig:
    """One parsed config file. Never mutated; reload builds a new one."""

    title: str = "NetSmog"
    maintainer: str = ""
    listen: str = "127.0.0.1:8080"
    secrets_path: Optional[Path] = None
    probe_intervals: Mapping[str, float] = field(default_factory=dict)
    workers: Mapping[str, WorkerInfo] = field(default_factory=dict)
    catalogue: Catalogue = field(default_factory=Catalogue)
    loaded_utc: str = ""


def _interval(value: Any, where: str) -> float:
    try:
        seconds = parse_duration_to_seconds(value)
    except ValueError as exc:
        raise ConfigError(f"{where}: {exc}") from exc
    if seconds is None or seconds <= 0:
        raise ConfigError(f"{where}: interval must be positive")
    return seconds


def _parse_target(group: str, name: str, raw: Any, probe_intervals: Mapping[str, float]) -> Target:
    where = f"targets.{group}.{name}"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where} must be a table")
    host = raw.get("host")
    if not isinstance(host, str) or not host.strip():
        raise ConfigError(f"{where}: host is required")
    probe = str(raw.get("probe") or PING)
    if "interval" in raw:
        interval = _interval(raw["interval"], where)
    else:
        interval = probe_intervals.get(probe, DEFAULT_INTERVAL_S)
    count = raw.get("count", DEFAULT_COUNT)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ConfigError(f"{where}: count must be a positive integer")
    workers = raw.get("workers") or []
    if not isinstance(workers, list):
        raise ConfigError(f"{where}: workers must be a list")
    return Target(
        title=str(raw.get("title") or name),
        probe=probe,
        interval=interval,
        count=count,
        host=host.strip(),
        workers=tuple(str(w) for w in workers),
    )


def _parse_group(name: str, raw: Any, probe_intervals: Mapping[str, float]) -> TargetGroup:
    if not isinstance(raw, dict):
        raise ConfigError(f"targets.{name} must be a table")
    meta = raw.get(META_KEY) or {}
    if not isinstance(meta, dict):
        raise ConfigError(f"targets.{name}.{META_KEY} must be a table")
    membership = meta.get("workers") or []
    if not isinstance(membership, list):
        raise ConfigError(f"targets.{name}.{META_KEY}.workers must be a list")
    targets = {
        target_name: _parse_target(name, target_name, entry, probe_intervals)
        for target_name, entry in raw.items()
        if target_name != META_KEY
    }
    return TargetGroup(name=name, targets=targets, membership=tuple(str(w) for w in membership))


def _section(doc: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = doc.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] must be a table")
    return value


def parse_config(doc: Mapping[str, Any], base_dir: Optional[Path] = None) -> CoordinatorConfig:
    """Build a CoordinatorConfig from an already-decoded TOML document."""
    if not isinstance(doc, Mapping):
        raise ConfigError("config must be a table")
    main = _section(doc, "main")
    probe_intervals: Dict[str, float] = {}
    for kind, settings in _section(doc, "probes").items():
        if isinstance(settings, dict) and "interval" in settings:
            probe_intervals[kind] = _interval(settings["interval"], f"probes.{kind}")

    workers = {}
    for name, info in _section(doc, "workers").items():
        info = info if isinstance(info, dict) else {}
        workers[name] = WorkerInfo(
            name=name,
            hostname=str(info.get("hostname", "")),
            display=str(info.get("display", "")),
        )

    groups = {
        name: _parse_group(name, raw, probe_intervals)
        for name, raw in _section(doc, "targets").items()
    }

    secrets_path = None
    if main.get("secrets"):
        secrets_path = Path(str(main["secrets"])).expanduser()
        if not secrets_path.is_absolute() and base_dir is not None:
            secrets_path = base_dir / secrets_path

    return CoordinatorConfig(
        title=str(main.get("title", "NetSmog")),
        maintainer=str(main.get("maintainer", "")),
        listen=str(main.get("listen", "127.0.0.1:8080")),
        secrets_path=secrets_path,
        probe_intervals=probe_intervals,
        workers=workers,
        catalogue=Catalogue(groups=groups),
        loaded_utc=utc_now_str(),
    )


def load_config(path: Path) -> CoordinatorConfig:
    """Read and parse the coordinator config file."""
    path = Path(path)
    try:
        with path.open("rb") as fh:
            doc = tomllib.load(fh)
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"cannot parse config {path}: {exc}") from exc
    return parse_config(doc, base_dir=path.resolve().parent)


class CatalogueHolder:
    """Process-wide config snapshot, replaced wholesale on reload."""

    def __init__(self, config: CoordinatorConfig, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._config = config

    @classmethod
    def from_file(cls, path: Path) -> "CatalogueHolder":
        return cls(load_config(path), path=path)

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    @property
    def catalogue(self) -> Catalogue:
        return self._config.catalogue

    def read(self) -> CoordinatorConfig:
        """Parse the config file again without installing it."""
        if self.path is None:
            return self._config
        return load_config(self.path)

    def replace(self, fresh: CoordinatorConfig) -> None:
        with self._lock:
            self._config = fresh

    def reload(self) -> CoordinatorConfig:
        """Re-read the config file. On error the current snapshot is kept and the error raised."""
        if self.path is None:
            return self._config
        fresh = self.read()
        self.replace(fresh)
        logger.info(
            "reloaded catalogue from %s: %d groups, %d targets",
            self.path,
            len(fresh.catalogue.groups),
            len(fresh.catalogue),
        )
        return fresh

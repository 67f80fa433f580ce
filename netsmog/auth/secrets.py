"""Shared-secret store read by the coordinator.

The secrets file is a flat TOML document mapping worker name to secret::

    www1 = "correct horse battery staple"
    lon-probe = "..."

The parsed mapping is immutable and swapped as a whole on reload, so
concurrent request handlers always see either the old or the new set.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from netsmog.errors import ConfigError
from netsmog.util.logging import get_logger

logger = get_logger(__name__)


def read_secrets(path: Path) -> Dict[str, str]:
    """Parse the secrets file into a ``{worker: secret}`` dict."""
    try:
        with path.open("rb") as fh:
            doc = tomllib.load(fh)
    except OSError as exc:
        raise ConfigError(f"cannot read secrets file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"cannot parse secrets file {path}: {exc}") from exc

    secrets: Dict[str, str] = {}
    for worker, secret in doc.items():
        if not isinstance(secret, str):
            raise ConfigError(f"secret for worker {worker!r} must be a string")
        secrets[worker] = secret
    return secrets


class SecretStore:
    """Worker secrets with atomic reload."""

    def __init__(self, path: Optional[Path] = None, secrets: Optional[Mapping[str, str]] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        if secrets is not None:
            self._secrets: Mapping[str, str] = MappingProxyType(dict(secrets))
        elif self.path is not None:
            self._secrets = MappingProxyType(read_secrets(self.path))
        else:
            raise ValueError("SecretStore needs a path or a secrets mapping")

    @classmethod
    def from_mapping(cls, secrets: Mapping[str, str]) -> "SecretStore":
        return cls(secrets=secrets)

    def read(self) -> Mapping[str, str]:
        """Parse the secrets file again without installing it."""
        if self.path is None:
            return self._secrets
        return MappingProxyType(read_secrets(self.path))

    def replace(self, fresh: Mapping[str, str]) -> None:
        fresh = fresh if isinstance(fresh, MappingProxyType) else MappingProxyType(dict(fresh))
        with self._lock:
            self._secrets = fresh

    def reload(self) -> None:
        """Re-read the secrets file; on failure the previous secrets stay live."""
        if self.path is None:
            return
        fresh = self.read()
        self.replace(fresh)
        logger.info("reloaded %d worker secrets from %s", len(fresh), self.path)

    def lookup(self, worker: str) -> Optional[str]:
        return self._secrets.get(worker)

    __call__ = lookup

    def workers(self) -> list:
        return sorted(self._secrets)

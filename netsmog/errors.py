"""Exception hierarchy shared by the coordinator and the worker."""

from __future__ import annotations

import enum


class NetsmogError(Exception):
    """Base class for all NetSmog errors."""


class ConfigError(NetsmogError):
    """Config or secret document missing, unreadable or malformed."""


class ResolutionError(NetsmogError):
    """Host name lookup failed or returned no usable address."""


class TransportError(NetsmogError):
    """Socket open, write or read failure."""


class ProbeTimeout(TransportError):
    """No matching echo reply arrived before the read deadline."""


class ProtocolError(NetsmogError):
    """A coordination document could not be parsed or has the wrong shape."""


class StorageError(NetsmogError):
    """The sample store rejected a write or could not be opened."""


class AuthFailure(str, enum.Enum):
    UNKNOWN_WORKER = "unknown_worker"
    MALFORMED = "malformed"
    MISMATCH = "mismatch"


class AuthError(NetsmogError):
    """Worker authorization failed.

    ``reason`` is for logs only; HTTP callers answer 403 without it.
    """

    def __init__(self, reason: AuthFailure, worker: str = ""):
        self.reason = reason
        self.worker = worker
        super().__init__(f"authorisation failed for {worker or '<anonymous>'}: {reason.value}")

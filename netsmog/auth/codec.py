"""Worker authorisation tokens.

A token is the bcrypt hash of ``"<worker>:<secret>"`` encoded with the URL-safe
base64 alphabet, so it travels in an HTTP header without revealing the shared
secret. The coordinator checks it against its own copy of the secret.

bcrypt only reads 72 bytes of input, so the full pair is first reduced to a
base64 SHA-256 digest (44 bytes) and that digest is what gets hashed.
"""

from __future__ import annotations

import base64
import binascii
import functools
import hashlib
import os
from typing import Callable, Optional

import bcrypt

from netsmog.errors import AuthError, AuthFailure


def _rounds_env(default: int) -> int:
    """bcrypt work factor from NETSMOG_BCRYPT_ROUNDS, clamped to 4..MAX_ROUNDS."""
    val = os.getenv("NETSMOG_BCRYPT_ROUNDS")
    if not val:
        return default
    try:
        return min(MAX_ROUNDS, max(MIN_ROUNDS, int(val)))
    except ValueError:
        return default


MIN_ROUNDS = 4
# Tokens claiming a higher cost are refused rather than checked.
MAX_ROUNDS = 16
DEFAULT_ROUNDS = _rounds_env(10)

SecretLookup = Callable[[str], Optional[str]]


def _material(worker: str, secret: str) -> bytes:
    digest = hashlib.sha256(f"{worker}:{secret}".encode("utf-8")).digest()
    return base64.b64encode(digest)


@functools.lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(b"netsmog:unknown-worker", bcrypt.gensalt(rounds))


def _cost(hashed: bytes) -> Optional[int]:
    """Work factor of a ``$2b$NN$...`` hash, or None if it is not one."""
    parts = hashed.split(b"$")
    if len(parts) != 4 or parts[0] or not parts[2].isdigit():
        return None
    return int(parts[2])


def issue(worker: str, secret: str, rounds: Optional[int] = None) -> str:
    """Return a fresh authorisation token for ``worker``."""
    salt = bcrypt.gensalt(rounds or DEFAULT_ROUNDS)
    hashed = bcrypt.hashpw(_material(worker, secret), salt)
    return base64.urlsafe_b64encode(hashed).decode("ascii")


def _decode(token: str) -> bytes:
    if not token:
        raise ValueError("empty token")
    return base64.urlsafe_b64decode(token.encode("ascii"))


def verify(worker: str, secret_lookup: SecretLookup, token: str) -> None:
    """Check ``token`` for ``worker``; returns None on success.

    Raises:
        AuthError: with reason UNKNOWN_WORKER, MALFORMED or MISMATCH.
    """
    try:
        hashed: Optional[bytes] = _decode(token)
    except (ValueError, binascii.Error, UnicodeEncodeError):
        hashed = None
    cost = _cost(hashed) if hashed is not None else None
    if cost is not None and not MIN_ROUNDS <= cost <= MAX_ROUNDS:
        cost = None

    secret = secret_lookup(worker) if worker else None
    if secret is None:
        # Same bcrypt cost as checking the presented token would take.
        bcrypt.checkpw(_material(worker, ""), _dummy_hash(cost or DEFAULT_ROUNDS))
        raise AuthError(AuthFailure.UNKNOWN_WORKER, worker)

    if hashed is None or cost is None:
        raise AuthError(AuthFailure.MALFORMED, worker)
    try:
        ok = bcrypt.checkpw(_material(worker, secret), hashed)
    except ValueError:
        raise AuthError(AuthFailure.MALFORMED, worker) from None
    if not ok:
        raise AuthError(AuthFailure.MISMATCH, worker)

"""
Configuration constants and environment parsing for NetSmog Web.

All NETSMOG_* environment variables the coordinator reads are parsed here and
exported as module-level constants. Blueprints and helpers import from this
module rather than reading os.environ directly.
"""
from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    """Parse an integer from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return max(1, int(float(val)))
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
CONFIG_PATH: str = os.getenv("NETSMOG_CONFIG", "config.toml")
"""Coordinator config file (targets, workers, secrets location)."""

DB_PATH: str = os.getenv("NETSMOG_DB", "netsmog.db")
"""SQLite file the submitted samples are written to."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
API_TOKEN: str = os.getenv("NETSMOG_API_TOKEN", "")
"""Optional bearer token protecting the read-only /api/* endpoints."""


# ---------------------------------------------------------------------------
# Request handling
# ---------------------------------------------------------------------------
SLOW_REQUEST_MS: int = _int_env("NETSMOG_SLOW_REQUEST_MS", 500)
"""Requests slower than this are logged."""

SERIES_LIMIT: int = _int_env("NETSMOG_SERIES_LIMIT", 1000)
"""Maximum rows returned by /api/series/<name>."""

ERROR_RING_MAX: int = _int_env("NETSMOG_ERROR_RING_MAX", 100)
"""Unhandled errors kept for /api/debug/errors."""

#!/usr/bin/env python3
"""
NetSmog coordinator: entry point.

Thin shim that runs the coordinator web service.

Run:
    python netsmog-server.py --config config.toml --db netsmog.db

Environment:
    NETSMOG_CONFIG            Config file (default config.toml)
    NETSMOG_DB                SQLite sample database (default netsmog.db)
    NETSMOG_API_TOKEN         Protect the read-only /api/* endpoints (optional)
    NETSMOG_LOG_LEVEL         Log level (default INFO; NETSMOG_DEBUG=1 for DEBUG)
"""
from __future__ import annotations

import sys

from netsmog_web.server import main

if __name__ == "__main__":
    sys.exit(main())

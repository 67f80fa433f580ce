#!/usr/bin/env python3
"""
NetSmog worker: entry point.

Thin shim that fetches this worker's targets and runs the ping loops.
Raw ICMP needs root or CAP_NET_RAW (or a ping_group_range covering the user).

Run:
    python netsmog-worker.py --server http://smog.example.net:8080/worker --secret /etc/netsmog/secret

Environment:
    NETSMOG_BCRYPT_ROUNDS     bcrypt work factor for the authorisation token (default 10)
    NETSMOG_LOG_LEVEL         Log level (default INFO; NETSMOG_DEBUG=1 for DEBUG)
"""
from __future__ import annotations

import sys

from netsmog.cli import main

if __name__ == "__main__":
    sys.exit(main())

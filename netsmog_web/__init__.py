"""
NetSmog Web: Flask coordinator for distributed ping workers.

This package provides the HTTP side of the coordinator that:
- Hands each authorised worker its share of the target catalogue
- Accepts latency results from workers and stores them in SQLite
- Serves stored series, summaries and instance status as JSON

Usage:
    from netsmog_web import create_app
    app = create_app(holder, secrets, store)
    app.run(host="0.0.0.0", port=8080)
"""
from __future__ import annotations

__version__ = "0.1.0"

from netsmog_web.app import create_app

__all__ = ["create_app", "__version__"]

"""
Blueprints package for NetSmog Web.

This package contains Flask blueprints that organize routes by function:
- worker_api: Worker protocol (GET/POST /worker)
- api_series: Stored result series and summaries (/api/series/*)
- api_status: Instance status, health and error tracking (/api/status, /api/health, /api/debug/errors)
"""
from __future__ import annotations

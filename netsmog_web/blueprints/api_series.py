"""
Series API blueprint for NetSmog Web.

Read access to stored samples with latency/loss summaries.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from netsmog_web.auth import require_auth
from netsmog_web.config import SERIES_LIMIT
from netsmog_web.stats import summarize_rows

bp = Blueprint("api_series", __name__)


@bp.get("/api/series")
def api_series():
    require_auth()
    store = current_app.extensions["netsmog_store"]
    return jsonify({"series": store.list_series()})


@bp.get("/api/series/<name>")
def api_series_detail(name: str):
    """Recent samples of one series plus overall and per-worker summaries."""
    require_auth()
    store = current_app.extensions["netsmog_store"]
    limit = request.args.get("limit", default=SERIES_LIMIT, type=int)
    limit = max(1, min(limit, SERIES_LIMIT))
    worker = request.args.get("worker") or None
    rows = store.fetch_series(name, limit=limit, worker=worker)
    if not rows:
        return jsonify({"error": f"no samples for series {name}"}), 404
    return jsonify({"series": name, "samples": rows, "summary": summarize_rows(rows)})

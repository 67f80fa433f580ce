"""
Status and observability API blueprint for NetSmog Web.

Provides the instance overview, a health check, and the unhandled-error ring
buffer filled by the app's global error handler.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from netsmog_web.auth import require_auth

bp = Blueprint("api_status", __name__)


@bp.get("/api/health")
def api_health():
    store = current_app.extensions["netsmog_store"]
    return jsonify({"ok": True, "samples": store.count()})


@bp.get("/api/status")
def api_status():
    """Instance title, registered workers and the loaded target groups."""
    require_auth()
    config = current_app.extensions["netsmog_catalogue"].config
    groups = [
        {
            "name": name,
            "targets": sorted(group.targets),
            "workers": list(group.membership),
        }
        for name, group in sorted(config.catalogue.groups.items())
    ]
    known = set(current_app.extensions["netsmog_secrets"].workers())
    workers = [
        {"name": w.name, "hostname": w.hostname, "display": w.display, "has_secret": w.name in known}
        for w in sorted(config.workers.values(), key=lambda w: w.name)
    ]
    return jsonify(
        {
            "title": config.title,
            "maintainer": config.maintainer,
            "loaded_utc": config.loaded_utc,
            "workers": workers,
            "groups": groups,
        }
    )


@bp.get("/api/debug/errors")
def api_debug_errors():
    require_auth()
    return jsonify({"errors": current_app.extensions["netsmog_error_ring"].entries()})

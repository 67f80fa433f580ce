"""
Worker protocol blueprint for NetSmog Web.

GET /worker hands an authorised worker its share of the catalogue; POST
/worker accepts its results. Both answer 403 with an empty body when the
worker headers do not verify.
"""
from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from netsmog.catalogue.resolver import resolve
from netsmog.errors import ProtocolError
from netsmog.util.logging import get_logger
from netsmog_web.auth import authorised_worker
from netsmog_web.results import parse_result_batch, store_results

logger = get_logger(__name__)

bp = Blueprint("worker_api", __name__)


def _forbidden() -> Response:
    return Response(b"", status=403)


@bp.get("/worker")
def fetch_assignment():
    """Return the targets this worker should probe."""
    logger.info("received request from %s", request.headers.get("Worker", "<anonymous>"))
    worker = authorised_worker()
    if worker is None:
        return _forbidden()
    holder = current_app.extensions["netsmog_catalogue"]
    assignment = resolve(holder.catalogue, worker)
    return jsonify(assignment.to_dict())


@bp.post("/worker")
def submit_results():
    """Store a batch of results from this worker."""
    logger.info("received results from %s", request.headers.get("Worker", "<anonymous>"))
    worker = authorised_worker()
    if worker is None:
        return _forbidden()
    try:
        batch = parse_result_batch(request.get_data())
    except ProtocolError as exc:
        logger.warning("rejecting results from %s: %s", worker, exc, extra={"worker": worker})
        return Response(str(exc), status=400, mimetype="text/plain")

    store = current_app.extensions["netsmog_store"]
    written = store_results(store, worker, batch)
    return jsonify({"status": "ok", "samples": written})

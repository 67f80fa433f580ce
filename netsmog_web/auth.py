"""
Authentication helpers for NetSmog Web.

Two schemes are in use:
- Workers prove their identity with the ``Worker`` and ``Authorisation``
  headers (bcrypt token, see netsmog.auth.codec).
- The read-only /api/* endpoints take an optional bearer token.
"""
from __future__ import annotations

from typing import Optional

from flask import abort, current_app, request

from netsmog.auth import codec
from netsmog.errors import AuthError
from netsmog.util.logging import get_logger
from netsmog_web.config import API_TOKEN

logger = get_logger(__name__)


def require_auth() -> None:
    """
    Check bearer token authentication for the current request.

    If NETSMOG_API_TOKEN is not set, authentication is disabled (open access).
    Otherwise, the request must include a valid Authorization header.

    Raises:
        werkzeug.exceptions.Unauthorized: If token is invalid or missing.
    """
    if not API_TOKEN:
        return

    hdr = request.headers.get("Authorization", "")
    if hdr != f"Bearer {API_TOKEN}":
        abort(401)


def authorised_worker() -> Optional[str]:
    """
    Verify the worker headers of the current request.

    Returns:
        The worker name, or None if authorisation failed. The failure reason is
        logged but never returned to the client.
    """
    worker = request.headers.get("Worker", "")
    token = request.headers.get("Authorisation", "")
    secrets = current_app.extensions["netsmog_secrets"]
    try:
        codec.verify(worker, secrets.lookup, token)
    except AuthError as exc:
        logger.warning("SECURITY: %s authorisation is incorrect (%s)", worker or "<anonymous>",
                       exc.reason.value, extra={"worker": worker})
        return None
    return worker

"""Standardised API error responses.

Usage
-----
    from hrdesk.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Request not found")
    return api_error(E.VALIDATION_REQUIRED, "title is required")

Workflow exceptions raised by services are turned into the same body shape
by ``register_workflow_error_handlers(bp)``; blueprints don't catch them.
"""

from __future__ import annotations

import logging

from flask import jsonify

from hrdesk.core.exceptions import WorkflowError
from hrdesk.middleware.jwt_auth import AuthenticationRequired

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    CONSULTATION_CLOSED = "ERR_CONSULTATION_CLOSED"
    STALE_STATE = "ERR_STALE_STATE"

    # Business precondition – HTTP 422
    PRECONDITION_FAILED = "ERR_PRECONDITION_FAILED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.INVALID_TRANSITION: 409,
    E.CONSULTATION_CLOSED: 409,
    E.STALE_STATE: 409,
    E.PRECONDITION_FAILED: 422,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (outstanding documents, versions, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_workflow_error_handlers(bp):
    """Map engine exceptions to JSON error responses for one blueprint."""

    @bp.errorhandler(WorkflowError)
    def _handle_workflow_error(exc):
        if exc.http_status >= 500:
            logger.error("Workflow error: %s", exc)
        else:
            logger.info("Workflow error %s: %s", exc.code, exc)
        return api_error(exc.code, str(exc), status=exc.http_status, details=exc.details or None)

    @bp.errorhandler(AuthenticationRequired)
    def _handle_unauthenticated(exc):
        return api_error(E.UNAUTHENTICATED, exc.reason)

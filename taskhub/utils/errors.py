"""Standardised API error responses.

Usage
-----
    from taskhub.utils.errors import api_error, E

    return api_error(E.VALIDATION_FAILED, "description is required")

Engine exceptions raised from services and decorators are rendered by the
handlers installed with ``register_error_handlers(app)``; views only call
``api_error`` for malformed requests caught before any service runs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from taskhub.core.exceptions import EngineError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error kinds, shared with ``EngineError.kind``."""

    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    VALIDATION_FAILED = "ValidationFailed"
    BAD_REQUEST = "BadRequest"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    INTERNAL = "Internal"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT: 409,
    E.VALIDATION_FAILED: 422,
    E.BAD_REQUEST: 400,
    E.METHOD_NOT_ALLOWED: 405,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNSUPPORTED_MEDIA_TYPE: 415,
    E.INTERNAL: 500,
}

_HTTP_KINDS = {status: kind for kind, status in _DEFAULT_STATUS.items()}


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
        Machine-readable error kind (use ``E.*`` constants).
    message : str
        Human-readable explanation.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Field-level breakdown.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    error: dict = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        error["details"] = details

    return jsonify({"success": False, "error": error}), http_status


def register_error_handlers(app):
    """Install app-wide handlers for engine errors and HTTP errors."""

    @app.errorhandler(EngineError)
    def _handle_engine_error(error: EngineError):
        log = logger.warning if error.status_code < 500 else logger.error
        log(
            "%s on %s %s: %s",
            error.kind, request.method, request.path, error,
            extra={"event_type": error.kind},
        )
        return jsonify({"success": False, "error": error.to_dict()}), error.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(error: HTTPException):
        code = _HTTP_KINDS.get(error.code, E.BAD_REQUEST)
        if error.code and error.code >= 500:
            code = E.INTERNAL
        return api_error(code, error.description or error.name, status=error.code)

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

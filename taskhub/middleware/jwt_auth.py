"""
JWT Auth Middleware — resolves the caller once per request into g.principal.

Credential sources, in order:
  1. Authorization: Bearer <token>
  2. the access-token cookie (JWT_COOKIE_NAME, default "access_token")

Routes opt in with decorators:

    @bp.route("/tasks", methods=["GET"])
    @login_required
    def list_tasks():
        principal = g.principal
        ...

    @bp.route("/auth/me", methods=["GET"])
    @login_optional
    def me():
        ...   # g.principal is None for anonymous callers

The principal is resolved at most once per request; later decorators and
services reuse ``g.principal`` instead of re-querying.
"""

import functools

from flask import current_app, g, request

from taskhub.services.session_validator import authenticate, authenticate_optional


def init_jwt_middleware(app):
    """Register a before_request hook that resets per-request auth state."""

    @app.before_request
    def _reset_principal():
        g.principal = None
        g.principal_resolved = False


def extract_credential() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    cookie_name = current_app.config.get("JWT_COOKIE_NAME", "access_token")
    return request.cookies.get(cookie_name) or None


def login_required(f):
    """Reject the request with 401 unless a live principal can be resolved."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "principal", None) is None:
            g.principal = authenticate(extract_credential())
            g.principal_resolved = True
        return f(*args, **kwargs)

    return decorated


def login_optional(f):
    """Resolve the principal if possible; anonymous callers proceed with None."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not getattr(g, "principal_resolved", False):
            g.principal = authenticate_optional(extract_credential())
            g.principal_resolved = True
        return f(*args, **kwargs)

    return decorated

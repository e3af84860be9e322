"""
Auth Blueprint — registration and JWT authentication endpoints.

  POST /api/v1/auth/register    — Organization + department + SuperAdmin → JWT pair
  POST /api/v1/auth/login       — Email + password → JWT pair
  POST /api/v1/auth/refresh     — Refresh token → new access token
  POST /api/v1/auth/logout      — Clear the access-token cookie
  GET  /api/v1/auth/me          — Current principal (null when anonymous)
"""

from flask import Blueprint, current_app, g

from taskhub.blueprints import json_body, success
from taskhub.middleware.jwt_auth import login_optional, login_required
from taskhub.services import auth_service

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _with_cookie(response, access_token):
    resp, status = response
    resp.set_cookie(
        current_app.config.get("JWT_COOKIE_NAME", "access_token"),
        access_token,
        max_age=current_app.config.get("JWT_ACCESS_EXPIRES", 900),
        httponly=True,
        secure=not current_app.debug and not current_app.testing,
        samesite="Strict",
    )
    return resp, status


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Register a new organization.

    Body: { "organization": {...}, "department": {...}, "user": {...} }
    """
    user, tokens = auth_service.register(json_body())
    return _with_cookie(
        success({"user": user.to_dict(), **tokens}, status=201),
        tokens["access_token"],
    )


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return JWT pair.

    Body: { "email": "...", "password": "...", "organization_id": 1 }
    ``organization_id`` is only needed when the email exists in several
    organizations.
    """
    data = json_body()
    principal, tokens = auth_service.login(
        (data.get("email") or "").strip(),
        data.get("password") or "",
        data.get("organization_id"),
    )
    return _with_cookie(
        success({"user": principal.to_dict(), **tokens}),
        tokens["access_token"],
    )


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new access token.

    Body: { "refresh_token": "..." }
    """
    principal, tokens = auth_service.refresh(json_body().get("refresh_token"))
    return _with_cookie(
        success({"user": principal.to_dict(), **tokens}),
        tokens["access_token"],
    )


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    resp, status = success({"logged_out": True})
    resp.delete_cookie(current_app.config.get("JWT_COOKIE_NAME", "access_token"))
    return resp, status


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_optional
def me():
    """Current principal, or ``null`` for anonymous callers."""
    principal = g.principal
    return success(principal.to_dict() if principal else None,
                   authenticated=principal is not None)

"""
Auth Service — registration, login and token refresh.

Login and refresh apply the same liveness checks as every authenticated
request (``session_validator.resolve_user``), so a deleted user, a deleted
organization/department or a lapsed subscription cannot obtain tokens.
"""

import logging

import jwt
from sqlalchemy import func

from taskhub.core.exceptions import UnauthenticatedError, ValidationError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.organization import Organization
from taskhub.models.user import User
from taskhub.services.helpers.transaction import commit
from taskhub.services.jwt_service import (
    decode_refresh_token,
    generate_access_token,
    generate_token_pair,
    hash_token,
    subject_of,
)
from taskhub.services.organization_service import validate_organization_fields
from taskhub.services.session_validator import resolve_user
from taskhub.services.user_service import validate_user_fields
from taskhub.services.validation import FieldErrors, require_text
from taskhub.utils.crypto import hash_password, verify_password
from taskhub.utils.helpers import utcnow

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════
def register(data):
    """Create an organization, its first department and a SuperAdmin HOD.

    Body sections: ``organization``, ``department``, ``user``. All three are
    validated before anything is written; the rows are committed together.
    """
    sections = {}
    for key in ("organization", "department", "user"):
        value = data.get(key)
        if not isinstance(value, dict):
            raise ValidationError(f"{key.capitalize()} details are required",
                                  details={key: "required"})
        sections[key] = value

    org_fields = validate_organization_fields(sections["organization"])

    errors = FieldErrors()
    dept_name = require_text(errors, sections["department"], "name", max_length=100,
                             min_length=2, label="Department name")
    dept_description = require_text(errors, sections["department"], "description",
                                    max_length=2000, required=False)
    errors.raise_if_any()

    user_data = dict(sections["user"], role="SuperAdmin", is_hod=True)
    user_fields = validate_user_fields(user_data, None, department_required=False)

    organization = Organization(is_platform_org=False, **org_fields)
    db.session.add(organization)
    db.session.flush()

    department = Department(
        organization_id=organization.id, name=dept_name, description=dept_description,
    )
    db.session.add(department)
    db.session.flush()

    password = user_fields.pop("password")
    user = User(
        organization_id=organization.id,
        department_id=department.id,
        password_hash=hash_password(password),
        **user_fields,
    )
    db.session.add(user)
    db.session.flush()

    organization.created_by_id = user.id
    department.created_by_id = user.id
    department.manager_id = user.id
    commit("register", "Organization")

    logger.info(
        "Organization %s registered with SuperAdmin %s", organization.id, user.id,
        extra={"organization_id": organization.id, "user_id": user.id,
               "event_type": "organization_registered"},
    )
    return user, generate_token_pair(user.id, organization.id)


# ═══════════════════════════════════════════════════════════════
# Login / refresh
# ═══════════════════════════════════════════════════════════════
def _find_login_user(email, organization_id=None):
    q = User.query.filter(func.lower(User.email) == email.lower())
    if organization_id is not None:
        q = q.filter(User.organization_id == organization_id)
    live = q.filter(User.is_deleted.is_(False)).all()
    if len(live) > 1:
        raise ValidationError(
            "Organization is required for this email",
            details={"organization_id": "Organization is required for this email"},
        )
    if live:
        return live[0]
    # Deleted accounts still resolve so the caller gets the specific reason.
    return q.order_by(User.deleted_at.desc()).first()


def login(email, password, organization_id=None):
    """Verify credentials and return ``(principal, tokens)``."""
    if not email or not password:
        raise ValidationError(
            "Email and password are required",
            details={"email": "required", "password": "required"},
        )

    user = _find_login_user(email.strip(), organization_id)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email,
                       extra={"event_type": "login_failed"})
        raise UnauthenticatedError("Invalid email or password")

    principal = resolve_user(user.id)

    user.last_login_at = utcnow()
    commit("login", "User")

    logger.info("User %s logged in", user.id,
                extra={"user_id": user.id, "organization_id": user.organization_id,
                       "event_type": "login"})
    return principal, generate_token_pair(user.id, user.organization_id)


def refresh(refresh_token):
    """Exchange a refresh token for a new access token after re-checking liveness."""
    if not refresh_token:
        raise UnauthenticatedError("Refresh token is required")
    try:
        payload = decode_refresh_token(refresh_token)
        user_id = subject_of(payload)
    except jwt.ExpiredSignatureError as exc:
        raise UnauthenticatedError("Refresh token has expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid refresh token %s", hash_token(refresh_token)[:12],
                       extra={"event_type": "refresh_rejected"})
        raise UnauthenticatedError("Invalid refresh token") from exc

    principal = resolve_user(user_id)
    logger.debug("Refreshed access token for user %s", user_id, extra={"user_id": user_id})
    return principal, {
        "access_token": generate_access_token(user_id, principal.organization.id),
        "token_type": "Bearer",
    }

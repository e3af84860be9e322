"""
User Service — CRUD, password change and lifecycle for users.

Rules enforced on top of the generic validators:
  - email, employee id and phone are unique per organization (soft-deleted
    users keep their values reserved)
  - ``is_hod`` only for SuperAdmin/Admin, and one live HOD per department
  - only a SuperAdmin may grant the SuperAdmin role
  - the last live SuperAdmin of an organization and platform users cannot
    be deleted
"""

import logging
import re

from sqlalchemy import func

from taskhub.core.exceptions import ConflictError, ForbiddenError, ValidationError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.user import User
from taskhub.services import cascade
from taskhub.services.helpers.scoped_queries import get_scoped
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.uniqueness import validate_unique
from taskhub.services.validation import (
    FieldErrors,
    normalize_email,
    normalize_phone,
    require_text,
    resolve_in_scope,
    validate_role_and_hod,
)
from taskhub.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

EMPLOYEE_ID_PATTERN = re.compile(r"^(?!0000)[0-9]{4}$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def list_query(principal, include_deleted=False, department_id=None, role=None):
    q = User.query.filter(scope_filter(principal, User, "users"))
    if not include_deleted:
        q = q.filter(User.is_deleted.is_(False))
    if department_id is not None:
        if not principal.is_platform_super_admin:
            get_scoped(Department, department_id, organization_id=principal.organization.id,
                       include_deleted=True)
        q = q.filter(User.department_id == department_id)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.last_name, User.first_name)


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════
def validate_password(errors, data, field="password"):
    password = data.get(field)
    if not password or not isinstance(password, str):
        errors.add(field, "Password is required")
        return None
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        errors.add(
            field,
            f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters",
        )
        return None
    return password


def check_single_hod(department_id, exclude_id=None):
    """ConflictError if the department already has a live HOD."""
    q = User.query.filter(
        User.department_id == department_id,
        User.is_hod.is_(True),
        User.is_deleted.is_(False),
    )
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(
            "User", "is_hod", department_id,
            message="Department already has a head of department",
        )


def _unique_in_org(errors, field, value, organization_id, exclude_id=None):
    if value:
        errors.check(
            field, validate_unique, User, field, value,
            scope={"organization_id": organization_id},
            exclude_id=exclude_id, scope_label="organization",
        )


def validate_user_fields(data, organization_id, existing=None, *, department_required=True):
    """Validate a create (``existing`` None) or update payload.

    Returns cleaned attributes; ``password`` is returned in plain text for
    the caller to hash.
    """
    errors = FieldErrors()
    out = {}
    creating = existing is None
    exclude_id = getattr(existing, "id", None)

    for field, label in (("first_name", "First name"), ("last_name", "Last name")):
        if creating or field in data:
            out[field] = require_text(errors, data, field, max_length=20, label=label)
    if "position" in data:
        out["position"] = require_text(errors, data, "position", max_length=100, required=False)

    if creating or "email" in data:
        out["email"] = normalize_email(errors, data, max_length=50)
        _unique_in_org(errors, "email", out["email"], organization_id, exclude_id)

    if "phone" in data:
        out["phone"] = normalize_phone(errors, data, required=False)
        _unique_in_org(errors, "phone", out["phone"], organization_id, exclude_id)

    if creating or "employee_id" in data:
        employee_id = str(data.get("employee_id") or "").strip()
        if not EMPLOYEE_ID_PATTERN.match(employee_id):
            errors.add("employee_id", "Employee ID must be a 4-digit number (0001-9999)")
        else:
            out["employee_id"] = employee_id
            _unique_in_org(errors, "employee_id", employee_id, organization_id, exclude_id)

    if creating:
        out["password"] = validate_password(errors, data)

    role = data.get("role", getattr(existing, "role", "User"))
    is_hod = bool(data.get("is_hod", getattr(existing, "is_hod", False)))
    if creating or "role" in data or "is_hod" in data:
        validate_role_and_hod(errors, role, is_hod)
        out["role"] = role
        out["is_hod"] = is_hod

    if creating or "department_id" in data:
        if data.get("department_id") is None:
            if department_required:
                errors.add("department_id", "Department is required")
        else:
            department = errors.check(
                "department_id", resolve_in_scope, Department, data["department_id"],
                organization_id, field="department_id",
            )
            if department is not None:
                out["department_id"] = department.id

    department_id = out.get("department_id", getattr(existing, "department_id", None))
    if is_hod and department_id is not None and not errors.has("is_hod"):
        errors.check("is_hod", check_single_hod, department_id, exclude_id)

    errors.raise_if_any()
    return out


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(principal, data):
    organization_id = principal.organization.id
    fields = validate_user_fields(data, organization_id)
    if fields["role"] == "SuperAdmin" and principal.role != "SuperAdmin":
        raise ForbiddenError("Only a SuperAdmin can create SuperAdmin users")

    password = fields.pop("password")
    user = User(
        organization_id=organization_id,
        password_hash=hash_password(password),
        is_platform_user=principal.organization.is_platform_org,
        **fields,
    )
    db.session.add(user)
    commit("create", "User")
    logger.info(
        "User %s created in organization %s by user %s",
        user.id, organization_id, principal.user_id,
        extra={"user_id": principal.user_id, "organization_id": organization_id},
    )
    return user


def update_user(principal, user, data):
    target = validate_exists(User, user.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    privileged = {"role", "is_hod", "department_id", "employee_id"} & set(data)
    if privileged and not principal.bypasses_ownership:
        raise ForbiddenError(
            f"Insufficient permissions to change {', '.join(sorted(privileged))}"
        )
    if data.get("role") == "SuperAdmin" and principal.role != "SuperAdmin":
        raise ForbiddenError("Only a SuperAdmin can grant the SuperAdmin role")
    if "password" in data:
        raise ValidationError(
            "Use the password endpoint to change passwords",
            details={"password": "Use the password endpoint to change passwords"},
        )

    changes = validate_user_fields(data, target.organization_id, existing=target)
    for key, value in changes.items():
        setattr(target, key, value)
    commit("update", "User")
    return target


def change_password(principal, user, data):
    target = validate_exists(User, user.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    errors = FieldErrors()
    own = target.id == principal.user_id
    if own and not verify_password(data.get("old_password") or "", target.password_hash):
        errors.add("old_password", "Old password is incorrect")
    new_password = validate_password(errors, data, "new_password")
    if new_password and own and new_password == data.get("old_password"):
        errors.add("new_password", "New password must be different from old password")
    errors.raise_if_any()

    target.password_hash = hash_password(new_password)
    commit("update", "User")
    logger.info("Password changed for user %s by user %s", target.id, principal.user_id,
                extra={"user_id": principal.user_id, "event_type": "password_changed"})
    return target


def _live_super_admins(organization_id, exclude_id):
    return (
        db.session.query(func.count(User.id))
        .filter(
            User.organization_id == organization_id,
            User.role == "SuperAdmin",
            User.is_deleted.is_(False),
            User.id != exclude_id,
        )
        .scalar()
    )


def delete_user(principal, user):
    if user.is_platform_user:
        raise ForbiddenError("Platform users cannot be deleted")
    if user.role == "SuperAdmin" and _live_super_admins(user.organization_id, user.id) == 0:
        raise ConflictError(
            "User", "role", user.id,
            message="Cannot delete the last SuperAdmin in the organization",
        )
    return cascade.cascade_delete(user, deleted_by=principal.user_id)


def restore_user(principal, user):
    target = validate_exists(User, user.id, LifecycleMode.MUST_EXIST_AND_BE_DELETED)
    if target.is_hod:
        check_single_hod(target.department_id, exclude_id=target.id)
    return cascade.cascade_restore(target)

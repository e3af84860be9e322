"""
Department Service — CRUD and lifecycle for departments.

A department always lives in the caller's organization. Its optional
manager must be an active SuperAdmin/Admin HOD of the same organization.
"""

import logging

from taskhub.core.exceptions import ConflictError, ForbiddenError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.user import User
from taskhub.services import cascade
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.uniqueness import validate_unique
from taskhub.services.validation import FieldErrors, require_text, validate_department_manager

logger = logging.getLogger(__name__)


def list_query(principal, include_deleted=False):
    q = Department.query.filter(scope_filter(principal, Department, "departments"))
    if not include_deleted:
        q = q.filter(Department.is_deleted.is_(False))
    return q.order_by(Department.name)


def _validate(data, organization_id, existing=None):
    errors = FieldErrors()
    out = {}
    creating = existing is None

    if creating or "name" in data:
        out["name"] = require_text(errors, data, "name", max_length=100, min_length=2)
        if out["name"] and not errors.has("name"):
            errors.check(
                "name", validate_unique, Department, "name", out["name"],
                scope={"organization_id": organization_id},
                exclude_id=getattr(existing, "id", None),
                scope_label="organization",
            )
    if "description" in data:
        out["description"] = require_text(errors, data, "description", max_length=2000,
                                          required=False)
    if data.get("manager_id") is not None:
        manager = errors.check("manager_id", validate_department_manager,
                               data["manager_id"], organization_id)
        if manager is not None:
            out["manager_id"] = manager.id
    elif "manager_id" in data:
        out["manager_id"] = None

    errors.raise_if_any()
    return out


def create_department(principal, data):
    organization_id = principal.organization.id
    fields = _validate(data, organization_id)
    department = Department(
        organization_id=organization_id,
        created_by_id=principal.user_id,
        **fields,
    )
    db.session.add(department)
    commit("create", "Department")
    logger.info("Department %s created in organization %s", department.id, organization_id,
                extra={"user_id": principal.user_id, "organization_id": organization_id})
    return department


def update_department(principal, department, data):
    dept = validate_exists(Department, department.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    for key, value in _validate(data, dept.organization_id, existing=dept).items():
        setattr(dept, key, value)
    commit("update", "Department")
    return dept


def _check_members_deletable(department):
    """Refuse a cascade that would take platform users or the last SuperAdmins with it."""
    members = User.query.filter(
        User.department_id == department.id, User.is_deleted.is_(False),
    )
    if members.filter(User.is_platform_user.is_(True)).count():
        raise ForbiddenError("Departments with platform users cannot be deleted")
    if not members.filter(User.role == "SuperAdmin").count():
        return
    remaining = User.query.filter(
        User.organization_id == department.organization_id,
        User.department_id != department.id,
        User.role == "SuperAdmin",
        User.is_deleted.is_(False),
    ).count()
    if remaining == 0:
        raise ConflictError(
            "Department", "users", department.id,
            message="Cannot delete the department of the last SuperAdmin in the organization",
        )


def delete_department(principal, department):
    _check_members_deletable(department)
    return cascade.cascade_delete(department, deleted_by=principal.user_id)


def restore_department(principal, department):
    return cascade.cascade_restore(department)

"""
Permission Matrix — static (role × resource × operation) → allowed table.

The matrix is built once at import time from ``_GRANTS`` and frozen in a
``MappingProxyType``. Every combination of known role, resource and
operation has an explicit boolean entry; anything not granted is False.
Lookups for unknown roles/resources/operations are also False.

Document-independent by construction: whether a *specific* document is in
reach is the scope evaluator's job (see ``scope_evaluator``), driven by the
per-resource ``ResourcePolicy`` declared here.

Usage:
    from taskhub.services.permission_matrix import allowed

    if not allowed(principal.role, "tasks", "delete"):
        raise ForbiddenError("Insufficient permissions to delete tasks")
"""

import itertools
from dataclasses import dataclass
from types import MappingProxyType

ROLES = ("SuperAdmin", "Admin", "Manager", "User")
OPERATIONS = ("create", "read", "update", "delete", "restore")
RESOURCES = (
    "organizations",
    "departments",
    "users",
    "tasks",
    "task_activities",
    "task_comments",
    "materials",
    "vendors",
    "notifications",
)

# Roles that are never bound by ownership or department scope
ELEVATED_ROLES = frozenset({"SuperAdmin", "Admin"})

_ALL = frozenset(OPERATIONS)
_CRUD = frozenset({"create", "read", "update", "delete"})
_CRU = frozenset({"create", "read", "update"})
_RU = frozenset({"read", "update"})
_RUD = frozenset({"read", "update", "delete"})
_R = frozenset({"read"})

_GRANTS = {
    "SuperAdmin": {
        "organizations": _ALL,
        "departments": _ALL,
        "users": _ALL,
        "tasks": _ALL,
        "task_activities": _ALL,
        "task_comments": _ALL,
        "materials": _ALL,
        "vendors": _ALL,
        "notifications": _RUD,
    },
    "Admin": {
        "organizations": _R,
        "departments": _R,
        "users": _CRUD,
        "tasks": _CRUD,
        "task_activities": _CRUD,
        "task_comments": _CRUD,
        "materials": _CRUD,
        "vendors": _CRUD,
        "notifications": _RUD,
    },
    "Manager": {
        "organizations": _R,
        "departments": _R,
        "users": _RU,
        "tasks": _CRUD,
        "task_activities": _CRUD,
        "task_comments": _CRUD,
        "materials": _CRU,
        "vendors": _RU,
        "notifications": _RU,
    },
    "User": {
        "organizations": _R,
        "departments": _R,
        "users": _RU,
        "tasks": _CRU,
        "task_activities": _CRU,
        "task_comments": _CRUD,
        "materials": _R,
        "vendors": _R,
        "notifications": _RU,
    },
}


def _build_matrix():
    matrix = {}
    for role, resource, operation in itertools.product(ROLES, RESOURCES, OPERATIONS):
        granted = _GRANTS.get(role, {}).get(resource, frozenset())
        matrix[(role, resource, operation)] = operation in granted
    return MappingProxyType(matrix)


MATRIX = _build_matrix()


def allowed(role, resource, operation) -> bool:
    """Pure static lookup; unknown keys are denied."""
    return MATRIX.get((role, resource, operation), False)


def operations_for(role, resource) -> frozenset:
    """All operations ``role`` may perform on ``resource``."""
    return frozenset(op for op in OPERATIONS if allowed(role, resource, op))


# ═══════════════════════════════════════════════════════════════
# Resource policies (consumed by the scope evaluator)
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ResourcePolicy:
    """How a resource's documents are scoped.

    Attributes:
        department_scoped: Documents carry a department that must match the
            principal's, unless the principal has cross-department reach.
        ownership_fields: Document attributes naming the owner(s); scalar
            ids or collections of users/ids.
        own_operations: Operations that require the principal to be an
            owner (Admin/SuperAdmin bypass).
    """

    department_scoped: bool = False
    ownership_fields: tuple = ()
    own_operations: frozenset = frozenset()


_POLICIES = {
    "organizations": ResourcePolicy(),
    "departments": ResourcePolicy(),
    "users": ResourcePolicy(
        ownership_fields=("id",),
        own_operations=frozenset({"update"}),
    ),
    "tasks": ResourcePolicy(
        department_scoped=True,
        ownership_fields=("created_by_id", "assignees", "watchers"),
        own_operations=frozenset({"update", "delete"}),
    ),
    "task_activities": ResourcePolicy(
        department_scoped=True,
        ownership_fields=("created_by_id",),
        own_operations=frozenset({"update", "delete"}),
    ),
    "task_comments": ResourcePolicy(
        department_scoped=True,
        ownership_fields=("created_by_id",),
        own_operations=frozenset({"update", "delete"}),
    ),
    "materials": ResourcePolicy(department_scoped=True),
    "vendors": ResourcePolicy(),
    "notifications": ResourcePolicy(
        department_scoped=True,
        ownership_fields=("recipient_ids",),
        own_operations=frozenset({"read", "update", "delete"}),
    ),
}

POLICIES = MappingProxyType(_POLICIES)


def policy_for(resource) -> ResourcePolicy:
    """Policy for ``resource``; unknown resources get the strictest default."""
    return POLICIES.get(resource, ResourcePolicy(department_scoped=True))


def _check_totality():
    missing = [r for r in RESOURCES if r not in POLICIES]
    if missing:
        raise RuntimeError(f"Resources without a scope policy: {missing}")


_check_totality()

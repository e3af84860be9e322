"""
Permission Decorators — role matrix + document scope checks for routes.

Usage:
    @bp.route("/tasks/<int:task_id>", methods=["DELETE"])
    @login_required
    @authorize("tasks", "delete", check_scope=True,
               get_document=document_loader(Task, "task_id"))
    def delete_task(task_id):
        task = g.document
        ...

Stages, each failing fast with ForbiddenError:
  1. permission matrix for (role, resource, operation); the document is
     not even loaded when this denies
  2. document scope (organization, department, ownership, platform rules)
     when ``check_scope`` is set

The loaded document is left on ``g.document`` for the view.
"""

import functools
import logging

from flask import g, request

from taskhub.core.exceptions import ForbiddenError, UnauthenticatedError
from taskhub.services import scope_evaluator
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.permission_matrix import allowed

logger = logging.getLogger(__name__)

_SINGULAR = {
    "organizations": "organization",
    "departments": "department",
    "users": "user",
    "tasks": "task",
    "task_activities": "task activity",
    "task_comments": "task comment",
    "materials": "material",
    "vendors": "vendor",
    "notifications": "notification",
}


def document_loader(model, arg):
    """Build a ``get_document`` callable reading view argument ``arg``.

    The document is resolved including soft-deleted rows; the lifecycle
    precondition of the operation is enforced later by the service.
    """

    def load(**view_args):
        return validate_exists(model, view_args.get(arg), LifecycleMode.MUST_EXIST)

    return load


def denial_message(reason, resource, operation):
    noun = _SINGULAR.get(resource, resource)
    if reason == scope_evaluator.NOT_OWNER:
        return f"You do not have permission to {operation} this {noun}"
    if reason == scope_evaluator.PLATFORM_READ_ONLY:
        return "Platform SuperAdmin can only read customer organizations"
    if reason == scope_evaluator.PLATFORM_ORG_DELETE:
        return "Platform organizations cannot be deleted"
    if reason == scope_evaluator.PLATFORM_LIFECYCLE_ONLY:
        return f"Only Platform SuperAdmin can {operation} organizations"
    return f"You do not have permission to {operation} this {noun} in this scope"


def check_permission(principal, resource, operation):
    """Matrix stage; raises ForbiddenError on denial."""
    if not allowed(principal.role, resource, operation):
        logger.warning(
            "User %s denied: role %s cannot %s %s",
            principal.user_id, principal.role, operation, resource,
            extra={
                "user_id": principal.user_id, "role": principal.role,
                "resource": resource, "operation": operation,
                "event_type": "permission_denied",
            },
        )
        raise ForbiddenError(f"Insufficient permissions to {operation} {resource}")


def enforce_scope(principal, resource, operation, document):
    """Scope stage; raises ForbiddenError with a reason-specific message."""
    reason = scope_evaluator.evaluate_scope(principal, resource, operation, document)
    if reason is None:
        return
    logger.warning(
        "User %s denied (%s): %s %s id=%s",
        principal.user_id, reason, operation, resource, getattr(document, "id", None),
        extra={
            "user_id": principal.user_id, "role": principal.role,
            "organization_id": principal.organization.id,
            "department_id": principal.department.id,
            "resource": resource, "operation": operation,
            "event_type": "scope_denied",
        },
    )
    raise ForbiddenError(denial_message(reason, resource, operation))


def authorize(resource: str, operation: str, check_scope: bool = False, get_document=None):
    """
    Decorator: matrix check, then (optionally) document scope check.

    Must run after ``login_required``.

    Args:
        resource: Matrix resource name, e.g. "tasks".
        operation: One of create/read/update/delete/restore.
        check_scope: Load the target document and evaluate its scope.
        get_document: ``callable(**view_args) -> entity`` used when
                      ``check_scope`` is set.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            principal = getattr(g, "principal", None)
            if principal is None:
                raise UnauthenticatedError("Authentication required")

            check_permission(principal, resource, operation)

            g.document = None
            if check_scope and get_document is not None:
                document = get_document(**kwargs)
                enforce_scope(principal, resource, operation, document)
                g.document = document

            logger.debug(
                "Authorized %s %s for user %s on %s",
                operation, resource, principal.user_id, request.path,
            )
            return f(*args, **kwargs)
        return decorated
    return decorator


"""
Task Service — the polymorphic task hierarchy.

``task_type`` picks the variant at creation and is immutable afterwards;
variant-specific rules live in ``validation.TASK_VARIANT_RULES``.

Assignees and watchers are told about changes through in-app
notifications (persisted with the mutation) and ``notify`` (after commit).
"""

import logging

from taskhub.core.exceptions import ValidationError
from taskhub.models import db
from taskhub.models.task import (
    AssignedTask,
    ProjectTask,
    RoutineTask,
    RoutineTaskMaterial,
    Task,
    TaskType,
)
from taskhub.services import cascade
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.notification import NotificationService
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.validation import FieldErrors, target_department_id, validate_task_payload

logger = logging.getLogger(__name__)

TASK_MODELS = {
    TaskType.PROJECT: ProjectTask,
    TaskType.ROUTINE: RoutineTask,
    TaskType.ASSIGNED: AssignedTask,
}


def parse_task_type(value) -> TaskType:
    try:
        return TaskType(value)
    except ValueError:
        message = f"Task type must be one of: {', '.join(t.value for t in TaskType)}"
        raise ValidationError(message, details={"task_type": message}) from None


def list_query(principal, *, task_type=None, status=None, include_deleted=False):
    q = Task.query.filter(scope_filter(principal, Task, "tasks"))
    if not include_deleted:
        q = q.filter(Task.is_deleted.is_(False))
    if task_type:
        q = q.filter(Task.task_type == parse_task_type(task_type).value)
    if status:
        q = q.filter(Task.status == status)
    return q.order_by(Task.created_at.desc(), Task.id.desc())


def _apply(task, attrs, *, replace_materials=False):
    for key, value in attrs.items():
        if key == "vendor":
            task.vendor_id = value.id if value is not None else None
        elif key == "materials":
            if replace_materials:
                task.materials.clear()
                db.session.flush()
            task.materials.extend(
                RoutineTaskMaterial(material_id=material.id, quantity=quantity)
                for material, quantity in value or []
            )
        else:
            setattr(task, key, value)


def _audience(task, principal):
    """Users to tell about a change, minus the actor."""
    ids = {u.id for u in task.watchers}
    ids |= {u.id for u in getattr(task, "assignees", [])}
    ids.add(task.created_by_id)
    ids.discard(principal.user_id)
    return sorted(ids)


def _label(task):
    return task.title or task.description[:50]


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def create_task(principal, data):
    kind = parse_task_type(data.get("task_type"))
    errors = FieldErrors()
    department_id = target_department_id(errors, principal, data)
    errors.raise_if_any()

    organization_id = principal.organization.id
    attrs = validate_task_payload(data, kind, organization_id, department_id)
    task = TASK_MODELS[kind](
        organization_id=organization_id,
        department_id=department_id,
        created_by_id=principal.user_id,
    )
    _apply(task, attrs)
    db.session.add(task)
    db.session.flush()

    announcement = None
    if kind is TaskType.ASSIGNED:
        recipients = [u.id for u in task.assignees if u.id != principal.user_id]
        if recipients:
            announcement = NotificationService.create(
                title="New task assigned",
                message=f"You have been assigned to: {_label(task)}",
                recipient_ids=recipients,
                organization_id=organization_id,
                department_id=department_id,
                type="TASK_ASSIGNED",
                entity_model="Task",
                entity_id=task.id,
                created_by_id=principal.user_id,
            )
    commit("create", kind.value)

    logger.info(
        "%s %s created by user %s", kind.value, task.id, principal.user_id,
        extra={"user_id": principal.user_id, "organization_id": organization_id,
               "department_id": department_id, "event_type": "task_created"},
    )
    if announcement is not None:
        NotificationService.announce(announcement, "task:assigned")
    return task


def update_task(principal, task, data):
    target = validate_exists(Task, task.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    if "task_type" in data and data["task_type"] != target.task_type:
        message = "Task type cannot be changed"
        raise ValidationError(message, details={"task_type": message})
    if "department_id" in data and str(data["department_id"]) != str(target.department_id):
        message = "Task department cannot be changed"
        raise ValidationError(message, details={"department_id": message})

    attrs = validate_task_payload(
        data, target.kind, target.organization_id, target.department_id, existing=target,
    )
    _apply(target, attrs, replace_materials=True)

    announcement = None
    recipients = _audience(target, principal)
    if recipients:
        announcement = NotificationService.create(
            title="Task updated",
            message=f"{_label(target)} was updated",
            recipient_ids=recipients,
            organization_id=target.organization_id,
            department_id=target.department_id,
            type="TASK_UPDATED",
            entity_model="Task",
            entity_id=target.id,
            created_by_id=principal.user_id,
        )
    commit("update", target.task_type)

    if announcement is not None:
        NotificationService.announce(announcement, "task:updated")
    return target


def delete_task(principal, task):
    return cascade.cascade_delete(task, deleted_by=principal.user_id)


def restore_task(principal, task):
    return cascade.cascade_restore(task)

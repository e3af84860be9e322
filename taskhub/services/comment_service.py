"""
Comment Service — task activities and threaded task comments.

Both inherit organization and department from what they hang off (the
task, or the comment's parent), so a record never straddles tenants. The
caller must be able to read that parent before adding to it.

Comment threads: a comment on a Task or TaskActivity has depth 0, a reply
has its parent's depth + 1, bounded by ``COMMENT_MAX_DEPTH``.
"""

import logging

from taskhub.core.exceptions import ValidationError
from taskhub.middleware.permission_required import enforce_scope
from taskhub.models import db
from taskhub.models.task import (
    ActivityMaterial,
    CommentParent,
    Task,
    TaskActivity,
    TaskComment,
)
from taskhub.services import cascade
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.notification import NotificationService
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.validation import (
    MAX_ACTIVITY_MATERIALS,
    MAX_MENTIONS,
    FieldErrors,
    parse_id_list,
    require_text,
    resolve_comment_parent,
    resolve_in_scope,
    resolve_users,
    validate_activity_task,
    validate_material_usage,
)

logger = logging.getLogger(__name__)

_PARENT_RESOURCES = {
    CommentParent.TASK: "tasks",
    CommentParent.TASK_ACTIVITY: "task_activities",
    CommentParent.TASK_COMMENT: "task_comments",
}


def _id_filter(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        message = f"{field} must be a valid id"
        raise ValidationError(message, details={field: message}) from None


# ═══════════════════════════════════════════════════════════════
# 1. TASK ACTIVITIES
# ═══════════════════════════════════════════════════════════════
def list_activities(principal, *, task_id=None, include_deleted=False):
    q = TaskActivity.query.filter(scope_filter(principal, TaskActivity, "task_activities"))
    if not include_deleted:
        q = q.filter(TaskActivity.is_deleted.is_(False))
    if task_id is not None:
        q = q.filter(TaskActivity.task_id == _id_filter(task_id, "task_id"))
    return q.order_by(TaskActivity.created_at.desc(), TaskActivity.id.desc())


def _replace_activity_materials(activity, usage, *, flush_first):
    if flush_first:
        activity.materials.clear()
        db.session.flush()
    activity.materials.extend(
        ActivityMaterial(material_id=material.id, quantity=quantity)
        for material, quantity in usage
    )


def create_activity(principal, data):
    if data.get("task_id") is None:
        raise ValidationError("Task is required", details={"task_id": "Task is required"})
    task = resolve_in_scope(Task, data["task_id"], principal.organization.id, field="task_id")
    enforce_scope(principal, "tasks", "read", task)
    validate_activity_task(task)

    errors = FieldErrors()
    description = require_text(errors, data, "description", max_length=2000, min_length=2)
    usage = validate_material_usage(
        errors, data, task.organization_id, task.department_id, max_items=MAX_ACTIVITY_MATERIALS,
    )
    errors.raise_if_any()

    activity = TaskActivity(
        task_id=task.id,
        description=description,
        organization_id=task.organization_id,
        department_id=task.department_id,
        created_by_id=principal.user_id,
    )
    _replace_activity_materials(activity, usage or [], flush_first=False)
    db.session.add(activity)
    commit("create", "TaskActivity")
    logger.info("TaskActivity %s added to task %s by user %s",
                activity.id, task.id, principal.user_id,
                extra={"user_id": principal.user_id, "organization_id": task.organization_id})
    return activity


def update_activity(principal, activity, data):
    target = validate_exists(TaskActivity, activity.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    if "task_id" in data and str(data["task_id"]) != str(target.task_id):
        message = "Activity task cannot be changed"
        raise ValidationError(message, details={"task_id": message})

    errors = FieldErrors()
    description = None
    if "description" in data:
        description = require_text(errors, data, "description", max_length=2000, min_length=2)
    usage = None
    if "materials" in data:
        usage = validate_material_usage(
            errors, data, target.organization_id, target.department_id,
            max_items=MAX_ACTIVITY_MATERIALS,
        )
    errors.raise_if_any()

    if description is not None:
        target.description = description
    if usage is not None:
        _replace_activity_materials(target, usage, flush_first=True)
    commit("update", "TaskActivity")
    return target


def delete_activity(principal, activity):
    return cascade.cascade_delete(activity, deleted_by=principal.user_id)


def restore_activity(principal, activity):
    return cascade.cascade_restore(activity)


# ═══════════════════════════════════════════════════════════════
# 2. TASK COMMENTS
# ═══════════════════════════════════════════════════════════════
def list_comments(principal, *, parent_model=None, parent_id=None, include_deleted=False):
    q = TaskComment.query.filter(scope_filter(principal, TaskComment, "task_comments"))
    if not include_deleted:
        q = q.filter(TaskComment.is_deleted.is_(False))
    if parent_model:
        q = q.filter(TaskComment.parent_model == parent_model)
    if parent_id is not None:
        q = q.filter(TaskComment.parent_id == _id_filter(parent_id, "parent_id"))
    return q.order_by(TaskComment.created_at.asc(), TaskComment.id.asc())


def _mentions(errors, data, organization_id):
    ids = parse_id_list(errors, data, "mention_ids", max_items=MAX_MENTIONS, label="Mentions")
    if ids is None:
        return None
    return resolve_users(errors, ids, organization_id, field="mention_ids")


def _announce_mentions(comment, principal, users):
    recipients = [u.id for u in users if u.id != principal.user_id]
    if not recipients:
        return None
    return NotificationService.create(
        title="You were mentioned",
        message=comment.content[:500],
        recipient_ids=recipients,
        organization_id=comment.organization_id,
        department_id=comment.department_id,
        type="MENTION",
        entity_model="TaskComment",
        entity_id=comment.id,
        created_by_id=principal.user_id,
    )


def create_comment(principal, data):
    if data.get("parent_id") is None:
        message = "Parent reference is required"
        raise ValidationError(message, details={"parent_id": message})
    kind, parent, depth = resolve_comment_parent(
        data.get("parent_model"), data.get("parent_id"), principal.organization.id,
    )
    enforce_scope(principal, _PARENT_RESOURCES[kind], "read", parent)

    errors = FieldErrors()
    content = require_text(errors, data, "content", max_length=2000)
    mentions = _mentions(errors, data, parent.organization_id)
    errors.raise_if_any()

    comment = TaskComment(
        parent_model=kind.value,
        parent_id=parent.id,
        content=content,
        depth=depth,
        organization_id=parent.organization_id,
        department_id=parent.department_id,
        created_by_id=principal.user_id,
        mentions=mentions or [],
    )
    db.session.add(comment)
    db.session.flush()

    announcement = _announce_mentions(comment, principal, mentions or [])
    commit("create", "TaskComment")
    if announcement is not None:
        NotificationService.announce(announcement, "comment:mention")
    return comment


def update_comment(principal, comment, data):
    target = validate_exists(TaskComment, comment.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    for frozen in ("parent_model", "parent_id"):
        if frozen in data and str(data[frozen]) != str(getattr(target, frozen)):
            message = "Comment parent cannot be changed"
            raise ValidationError(message, details={frozen: message})

    errors = FieldErrors()
    content = None
    if "content" in data:
        content = require_text(errors, data, "content", max_length=2000)
    mentions = None
    if "mention_ids" in data:
        mentions = _mentions(errors, data, target.organization_id)
    errors.raise_if_any()

    announcement = None
    if content is not None:
        target.content = content
    if mentions is not None:
        previous = {u.id for u in target.mentions}
        target.mentions = mentions
        added = [u for u in mentions if u.id not in previous]
        announcement = _announce_mentions(target, principal, added)
    commit("update", "TaskComment")
    if announcement is not None:
        NotificationService.announce(announcement, "comment:mention")
    return target


def delete_comment(principal, comment):
    return cascade.cascade_delete(comment, deleted_by=principal.user_id)


def restore_comment(principal, comment):
    return cascade.cascade_restore(comment)

"""
Cascade Integrity Controller — soft-delete and restore across the hierarchy.

Two tables drive everything, so a new entity type participates by adding
one entry to each:

  PARENT_EDGES  entity type → accessors returning (ParentModel, parent_id)
                used to walk the ownership chain upwards (restore check)
  CHILD_EDGES   entity type → accessors returning a query of dependents
                used to propagate a delete downwards

Delete:
  the root is re-read and must be active; it and every live structural
  dependent are soft-deleted in one transaction. The walk is bounded by
  ``CASCADE_MAX_DEPTH`` and a per-call visited set.

Restore:
  the root is re-read and must be deleted; every ancestor is checked (not
  only the immediate parent) and the first deleted one blocks the restore
  with ConflictError. Only the root is restored; children that were
  cascaded stay deleted until restored explicitly, each re-running the
  same ancestor check.
"""

import logging
import time

from flask import current_app

from taskhub.core.exceptions import ConflictError, NotFoundError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.inventory import Material, Vendor
from taskhub.models.notification import Notification
from taskhub.models.organization import Organization
from taskhub.models.task import CommentParent, Task, TaskActivity, TaskComment
from taskhub.models.user import User
from taskhub.services.helpers.scoped_queries import find_by_id
from taskhub.services.lifecycle import LifecycleMode, validate_exists

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

_COMMENT_PARENT_MODELS = {
    CommentParent.TASK.value: Task,
    CommentParent.TASK_ACTIVITY.value: TaskActivity,
    CommentParent.TASK_COMMENT.value: TaskComment,
}


def _org(e):
    return Organization, e.organization_id


def _dept(e):
    return Department, e.department_id


def _task(e):
    return Task, e.task_id


def _comment_parent(e):
    return _COMMENT_PARENT_MODELS[e.parent_model], e.parent_id


# Nearest ancestor first
PARENT_EDGES = {
    Organization: (),
    Department: (_org,),
    User: (_dept, _org),
    Material: (_dept, _org),
    Vendor: (_org,),
    Task: (_dept, _org),
    TaskActivity: (_task,),
    TaskComment: (_comment_parent,),
    Notification: (_dept, _org),
}


def _by_org(model):
    return lambda e: model.query.filter(model.organization_id == e.id)


def _by_dept(model):
    return lambda e: model.query.filter(model.department_id == e.id)


def _comments_on(parent):
    return lambda e: TaskComment.query.filter(
        TaskComment.parent_model == parent.value, TaskComment.parent_id == e.id,
    )


CHILD_EDGES = {
    Organization: (
        _by_org(Department), _by_org(User), _by_org(Task),
        _by_org(Material), _by_org(Vendor), _by_org(Notification),
    ),
    Department: (_by_dept(User), _by_dept(Task), _by_dept(Material), _by_dept(Notification)),
    Task: (
        lambda e: TaskActivity.query.filter(TaskActivity.task_id == e.id),
        _comments_on(CommentParent.TASK),
    ),
    TaskActivity: (_comments_on(CommentParent.TASK_ACTIVITY),),
    TaskComment: (_comments_on(CommentParent.TASK_COMMENT),),
    User: (),
    Material: (),
    Vendor: (),
    Notification: (),
}


def _release_managed_departments(user):
    Department.query.filter(
        Department.manager_id == user.id, Department.is_deleted.is_(False),
    ).update({"manager_id": None}, synchronize_session="fetch")


# Side effects applied to a node in the same transaction as its soft delete
ON_DELETE = {
    User: (_release_managed_departments,),
}


def entity_type(entity):
    """Registered type for ``entity`` (Task variants map to Task)."""
    for model in PARENT_EDGES:
        if isinstance(entity, model):
            return model
    raise ValueError(f"{type(entity).__name__} does not take part in cascades")


def _key(entity):
    return entity_type(entity).__name__, entity.id


def _max_depth():
    return current_app.config.get("CASCADE_MAX_DEPTH", DEFAULT_MAX_DEPTH)


# ═══════════════════════════════════════════════════════════════
# Ancestor walk
# ═══════════════════════════════════════════════════════════════
def ancestors(entity):
    """Yield every ancestor of ``entity``, nearest first, including deleted ones.

    Raises NotFoundError if an ancestor row no longer exists.
    """
    visited = {_key(entity)}
    frontier = [entity]
    while frontier:
        current = frontier.pop(0)
        for edge in PARENT_EDGES[entity_type(current)]:
            model, parent_id = edge(current)
            if parent_id is None or (model.__name__, parent_id) in visited:
                continue
            parent = find_by_id(model, parent_id, include_deleted=True, fresh=True)
            if parent is None:
                raise NotFoundError(resource=model.__name__, resource_id=parent_id)
            visited.add(_key(parent))
            yield parent
            frontier.append(parent)


def first_deleted_ancestor(entity):
    for ancestor in ancestors(entity):
        if ancestor.is_deleted:
            return ancestor
    return None


# ═══════════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════════
def _delete_tree(entity, deleted_by, depth, visited, max_depth, deleted):
    key = _key(entity)
    if key in visited:
        logger.debug("Cascade delete: %s id=%s already visited", *key)
        return
    visited.add(key)

    entity.soft_delete(deleted_by)
    for hook in ON_DELETE.get(entity_type(entity), ()):
        hook(entity)
    deleted.append(key)
    logger.info("Cascade delete: %s id=%s (depth %d)", key[0], key[1], depth)

    if depth >= max_depth:
        logger.warning("Maximum cascade depth reached at %s id=%s", *key)
        return

    for edge in CHILD_EDGES[entity_type(entity)]:
        for child in edge(entity).filter_by(is_deleted=False).all():
            _delete_tree(child, deleted_by, depth + 1, visited, max_depth, deleted)


def cascade_delete(entity, deleted_by=None) -> dict:
    """Soft-delete ``entity`` and its live dependents in one transaction.

    The root is re-read first and must still be active, so a second call on
    the same entity is rejected with ConflictError.

    Returns a summary: ``{"root": ..., "deleted": [(type, id), ...], "duration_ms": ...}``.
    """
    started = time.perf_counter()
    model = entity_type(entity)
    root = validate_exists(model, entity.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)

    deleted = []
    try:
        _delete_tree(root, deleted_by, 0, set(), _max_depth(), deleted)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Cascade delete failed for %s id=%s", model.__name__, entity.id)
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "Cascade delete of %s id=%s soft-deleted %d entities (%.0fms)",
        model.__name__, entity.id, len(deleted), duration_ms,
        extra={"event_type": "cascade_delete", "duration_ms": duration_ms},
    )
    return {"root": (model.__name__, entity.id), "deleted": deleted, "duration_ms": duration_ms}


# ═══════════════════════════════════════════════════════════════
# Restore
# ═══════════════════════════════════════════════════════════════
def check_restorable(entity):
    """Raise ConflictError if any ancestor of ``entity`` is still deleted."""
    blocker = first_deleted_ancestor(entity)
    if blocker is None:
        return
    name = entity_type(entity).__name__
    parent_name = entity_type(blocker).__name__
    logger.warning(
        "Restore of %s id=%s blocked by deleted %s id=%s",
        name, entity.id, parent_name, blocker.id,
        extra={"event_type": "restore_blocked"},
    )
    raise ConflictError(
        name, parent_name.lower(), blocker.id,
        message=f"Cannot restore {name.lower()}: parent {parent_name.lower()} is deleted. "
                f"Restore the {parent_name.lower()} first",
    )


def cascade_restore(entity):
    """Restore ``entity`` alone after verifying its whole ancestor chain is live."""
    model = entity_type(entity)
    root = validate_exists(model, entity.id, LifecycleMode.MUST_EXIST_AND_BE_DELETED)
    check_restorable(root)

    try:
        root.restore()
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Restore failed for %s id=%s", model.__name__, entity.id)
        raise

    logger.info(
        "Restored %s id=%s", model.__name__, entity.id,
        extra={"event_type": "cascade_restore"},
    )
    return root

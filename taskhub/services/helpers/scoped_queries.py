"""
Repository-level query helpers.

Every lookup by id in the engine goes through these helpers so that the
"include soft-deleted" mode is applied the same way everywhere:

  - ``find_by_id(model, pk, include_deleted=True)`` is what validators use,
    so "not found" and "found but deleted" stay distinguishable.
  - ``find_by_id(model, pk)`` (live rows only) is what plain reads use.
  - ``fresh=True`` bypasses the identity map and re-reads the row, used
    immediately before a lifecycle mutation.

``get_scoped`` additionally pins the lookup to a tenant scope and raises
NotFoundError when nothing matches.

Usage:
    dept = find_by_id(Department, dept_id, include_deleted=True)
    task = get_scoped(Task, task_id, organization_id=principal.organization.id)
"""

import logging

from sqlalchemy import select

from taskhub.core.exceptions import NotFoundError
from taskhub.models import db

logger = logging.getLogger(__name__)

# Supported scope keyword → model column name.
_SCOPE_KWARGS = ("organization_id", "department_id")


def find_by_id(model, pk, *, include_deleted: bool = False, fresh: bool = False):
    """Return the row with primary key ``pk`` or None.

    Args:
        model: SQLAlchemy model class with an ``id`` PK.
        pk: Primary key value. Non-integer input returns None.
        include_deleted: When False, soft-deleted rows are treated as absent.
        fresh: Re-read column values from the database even if the row is
               already in the session.
    """
    try:
        pk = int(pk)
    except (TypeError, ValueError):
        return None

    stmt = select(model).where(model.id == pk)
    if not include_deleted and hasattr(model, "is_deleted"):
        stmt = stmt.where(model.is_deleted.is_(False))
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one_or_none()


def get_scoped(
    model,
    pk,
    *,
    organization_id: int | None = None,
    department_id: int | None = None,
    include_deleted: bool = False,
):
    """Fetch a single entity by PK with a mandatory scope filter.

    Raises:
        ValueError: If no scope is provided or a scope column is missing
                    from the model (an unscoped lookup is never performed).
        NotFoundError: If no row matches PK + scope.
    """
    provided = {
        "organization_id": organization_id,
        "department_id": department_id,
    }
    provided = {k: v for k, v in provided.items() if v is not None}
    if not provided:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter "
            f"({', '.join(_SCOPE_KWARGS)})."
        )
    missing = sorted(field for field in provided if not hasattr(model, field))
    if missing:
        raise ValueError(
            f"{model.__name__} id={pk}: scope field(s) {missing} are not columns on the model."
        )

    entity = find_by_id(model, pk, include_deleted=include_deleted)
    if entity is None or any(getattr(entity, f) != v for f, v in provided.items()):
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, provided)
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return entity

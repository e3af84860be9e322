"""
Existence & Lifecycle Validator.

Resolves a referenced entity by id, always including soft-deleted rows,
and enforces the lifecycle state the current operation needs:

    MUST_EXIST                 read by id (soft-deleted rows stay readable)
    MUST_EXIST_AND_BE_ACTIVE   update, delete, and references on create
    MUST_EXIST_AND_BE_DELETED  restore

Absent rows raise NotFoundError; rows in the wrong state raise
ConflictError. The row is re-read from the database on every call so a
concurrent delete/restore committed since the session loaded it is seen.
"""

import enum
import logging

from taskhub.core.exceptions import ConflictError, NotFoundError
from taskhub.services.helpers.scoped_queries import find_by_id

logger = logging.getLogger(__name__)


class LifecycleMode(str, enum.Enum):
    MUST_EXIST = "must_exist"
    MUST_EXIST_AND_BE_ACTIVE = "must_exist_and_be_active"
    MUST_EXIST_AND_BE_DELETED = "must_exist_and_be_deleted"


_OPERATION_MODES = {
    "create": LifecycleMode.MUST_EXIST_AND_BE_ACTIVE,
    "read": LifecycleMode.MUST_EXIST,
    "update": LifecycleMode.MUST_EXIST_AND_BE_ACTIVE,
    "delete": LifecycleMode.MUST_EXIST_AND_BE_ACTIVE,
    "restore": LifecycleMode.MUST_EXIST_AND_BE_DELETED,
}


def mode_for(operation: str) -> LifecycleMode:
    """Lifecycle precondition for the target of ``operation``.

    References made while creating another entity use ``create``.
    """
    try:
        return _OPERATION_MODES[operation]
    except KeyError:
        raise ValueError(f"Unknown operation {operation!r}") from None


def validate_exists(model, entity_id, mode=LifecycleMode.MUST_EXIST, *, field=None):
    """Resolve ``model`` row ``entity_id`` and enforce ``mode``.

    Args:
        model: Model class to resolve.
        entity_id: Primary key (from a path parameter or request body).
        mode: A ``LifecycleMode``.
        field: Request field the id came from, used in error details.

    Returns:
        The entity.

    Raises:
        NotFoundError: No row with that id, deleted or not.
        ConflictError: The row is deleted when it must be active, or active
                       when it must be deleted.
    """
    name = model.__name__
    entity = find_by_id(model, entity_id, include_deleted=True, fresh=True)
    if entity is None:
        logger.debug("validate_exists: %s id=%s not found", name, entity_id)
        raise NotFoundError(resource=name, resource_id=entity_id)

    deleted = bool(getattr(entity, "is_deleted", False))
    if mode is LifecycleMode.MUST_EXIST_AND_BE_ACTIVE and deleted:
        message = (
            f"Cannot reference deleted {name.lower()}" if field
            else f"{name} is already deleted"
        )
        raise ConflictError(name, field or "is_deleted", entity_id, message=message)
    if mode is LifecycleMode.MUST_EXIST_AND_BE_DELETED and not deleted:
        raise ConflictError(name, field or "is_deleted", entity_id, message=f"{name} is not deleted")
    return entity


def validate_reference(model, entity_id, *, field):
    """Shorthand for an active reference supplied in a create/update payload."""
    return validate_exists(model, entity_id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE, field=field)

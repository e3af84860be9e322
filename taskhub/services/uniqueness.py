"""
Scoped Uniqueness Validator.

A value is unique when no other row (soft-deleted rows included) has the
same value within the same scope. Soft-deleted rows keep reserving their
email/phone/employee id/name so that restoring them can never collide
with a newer record.

Usage:
    validate_unique(User, "email", data["email"],
                    scope={"organization_id": org_id},
                    scope_label="organization")
"""

import logging

from sqlalchemy import func, select

from taskhub.core.exceptions import ConflictError
from taskhub.models import db

logger = logging.getLogger(__name__)

# Fields compared case-insensitively
_CASE_INSENSITIVE = frozenset({"email", "name"})


def _field_label(field: str) -> str:
    words = field.replace("_id", " ID").replace("_", " ").strip().split(" ")
    return " ".join([words[0].capitalize()] + words[1:])


def is_unique(model, field, value, scope=None, exclude_id=None) -> bool:
    """True when no row of ``model`` in ``scope`` already holds ``value``.

    Args:
        model: Model class.
        field: Column name to test.
        value: Candidate value. None/empty is always unique.
        scope: ``{column: value}`` pairs that bound the namespace
               (e.g. ``{"organization_id": 7}``). Empty means global.
        exclude_id: PK of the row being updated, ignored in the lookup.
    """
    if value is None or value == "":
        return True

    column = getattr(model, field)
    if field in _CASE_INSENSITIVE and isinstance(value, str):
        stmt = select(model.id).where(func.lower(column) == value.lower())
    else:
        stmt = select(model.id).where(column == value)

    for scope_field, scope_value in (scope or {}).items():
        stmt = stmt.where(getattr(model, scope_field) == scope_value)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)

    # No soft-delete filter: deleted rows still occupy the namespace.
    clash = db.session.execute(stmt.limit(1)).scalar_one_or_none()
    return clash is None


def validate_unique(model, field, value, scope=None, exclude_id=None, *, scope_label=None):
    """Raise ConflictError naming ``field`` if ``value`` is taken in ``scope``."""
    if is_unique(model, field, value, scope=scope, exclude_id=exclude_id):
        return
    where = f" in this {scope_label}" if scope_label else ""
    message = f"{_field_label(field)} already exists{where}"
    logger.info(
        "Uniqueness conflict: %s.%s=%r scope=%s", model.__name__, field, value, scope,
        extra={"event_type": "uniqueness_conflict"},
    )
    raise ConflictError(model.__name__, field, value, message=message)

"""Existence & lifecycle validation."""

import pytest
from sqlalchemy import update

from taskhub.core.exceptions import ConflictError, NotFoundError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.services.lifecycle import LifecycleMode, mode_for, validate_exists, validate_reference


def test_missing_row_is_not_found(world):
    with pytest.raises(NotFoundError) as exc:
        validate_exists(Department, 99999)
    assert exc.value.message == "Department not found"
    assert "99999" not in exc.value.message


def test_non_numeric_id_is_not_found(world):
    with pytest.raises(NotFoundError):
        validate_exists(Department, "abc")


def test_deleted_row_is_still_readable(world):
    world.sales.soft_delete()
    db.session.commit()
    dept = validate_exists(Department, world.sales.id, LifecycleMode.MUST_EXIST)
    assert dept.is_deleted


def test_active_required(world):
    world.sales.soft_delete()
    db.session.commit()
    with pytest.raises(ConflictError, match="Department is already deleted"):
        validate_exists(Department, world.sales.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)


def test_deleted_required(world):
    with pytest.raises(ConflictError, match="Department is not deleted"):
        validate_exists(Department, world.sales.id, LifecycleMode.MUST_EXIST_AND_BE_DELETED)


def test_reference_to_deleted_department_is_conflict(world):
    world.sales.soft_delete()
    db.session.commit()
    with pytest.raises(ConflictError) as exc:
        validate_reference(Department, world.sales.id, field="department_id")
    assert exc.value.message == "Cannot reference deleted department"
    assert exc.value.details == {"department_id": "Cannot reference deleted department"}


def test_state_is_reread_from_database(world):
    # A stale in-session object must not hide a committed delete
    dept_id = world.sales.id
    db.session.execute(
        update(Department).where(Department.id == dept_id).values(is_deleted=True)
    )
    db.session.commit()
    with pytest.raises(ConflictError):
        validate_exists(Department, dept_id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)


@pytest.mark.parametrize("operation, mode", [
    ("create", LifecycleMode.MUST_EXIST_AND_BE_ACTIVE),
    ("read", LifecycleMode.MUST_EXIST),
    ("update", LifecycleMode.MUST_EXIST_AND_BE_ACTIVE),
    ("delete", LifecycleMode.MUST_EXIST_AND_BE_ACTIVE),
    ("restore", LifecycleMode.MUST_EXIST_AND_BE_DELETED),
])
def test_mode_for(operation, mode):
    assert mode_for(operation) is mode


def test_mode_for_unknown_operation():
    with pytest.raises(ValueError):
        mode_for("archive")

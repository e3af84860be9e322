"""Scoped uniqueness: soft-deleted rows keep their values reserved."""

import pytest

from taskhub.core.exceptions import ConflictError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.user import User
from taskhub.services.uniqueness import is_unique, validate_unique


def test_value_taken_in_scope(world):
    assert not is_unique(User, "email", world.user.email, scope={"organization_id": world.acme.id})


def test_same_value_in_another_scope_is_free(world):
    assert is_unique(User, "email", world.user.email, scope={"organization_id": world.globex.id})


def test_email_comparison_ignores_case(world):
    assert not is_unique(User, "email", world.user.email.upper(),
                         scope={"organization_id": world.acme.id})


def test_soft_deleted_value_stays_reserved(world):
    email = world.user.email
    world.user.soft_delete()
    db.session.commit()
    with pytest.raises(ConflictError) as exc:
        validate_unique(User, "email", email, scope={"organization_id": world.acme.id},
                        scope_label="organization")
    assert exc.value.message == "Email already exists in this organization"


def test_exclude_id_ignores_the_row_itself(world):
    assert is_unique(User, "employee_id", world.user.employee_id,
                     scope={"organization_id": world.acme.id}, exclude_id=world.user.id)


def test_empty_values_are_always_unique(world):
    assert is_unique(User, "phone", None, scope={"organization_id": world.acme.id})
    assert is_unique(User, "phone", "", scope={"organization_id": world.acme.id})


def test_department_names_are_per_organization(world):
    with pytest.raises(ConflictError) as exc:
        validate_unique(Department, "name", "operations",
                        scope={"organization_id": world.acme.id}, scope_label="organization")
    assert exc.value.kind == "Conflict"
    validate_unique(Department, "name", "Operations", scope={"organization_id": world.globex.id})


def test_employee_id_label(world):
    with pytest.raises(ConflictError, match="Employee ID already exists"):
        validate_unique(User, "employee_id", world.user.employee_id,
                        scope={"organization_id": world.acme.id})

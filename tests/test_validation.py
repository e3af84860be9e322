"""Field validation chains and the shared domain rules."""

import pytest

from taskhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from taskhub.models import db
from taskhub.models.department import Department
from taskhub.models.task import TaskComment, TaskType
from taskhub.services.validation import (
    FieldErrors,
    normalize_email,
    normalize_phone,
    parse_id_list,
    resolve_comment_parent,
    resolve_in_scope,
    target_department_id,
    validate_activity_task,
    validate_department_manager,
    validate_tags,
    validate_task_payload,
)


class TestFieldErrors:
    def test_single_failure_keeps_its_kind(self):
        errors = FieldErrors()
        errors.check("vendor_id", _raise, ConflictError("Vendor", "is_deleted", message="gone"))
        with pytest.raises(ConflictError, match="gone"):
            errors.raise_if_any()

    def test_rule_violations_merge(self):
        errors = FieldErrors()
        errors.add("title", "Title is required")
        errors.add("priority", "Bad priority")
        with pytest.raises(ValidationError) as exc:
            errors.raise_if_any()
        assert exc.value.message == "Validation failed"
        assert exc.value.details == {"title": "Title is required", "priority": "Bad priority"}

    def test_conflict_absorbs_other_details(self):
        errors = FieldErrors()
        errors.add("title", "Title is required")
        errors.check("vendor_id", _raise, NotFoundError("Vendor"))
        with pytest.raises(NotFoundError) as exc:
            errors.raise_if_any()
        assert set(exc.value.details) == {"title", "vendor_id"}

    def test_nothing_recorded(self):
        FieldErrors().raise_if_any()

    def test_check_returns_value(self):
        assert FieldErrors().check("x", lambda: 7) == 7

    def test_check_forwards_a_field_keyword(self, world):
        errors = FieldErrors()
        found = errors.check(
            "department_id", resolve_in_scope, Department, world.ops.id, world.acme.id,
            field="department_id",
        )
        assert found.id == world.ops.id
        assert not errors


def _raise(exc):
    raise exc


class TestPrimitives:
    def test_email_normalised(self):
        errors = FieldErrors()
        assert normalize_email(errors, {"email": "  Jane.Doe@Acme.IO "}) == "jane.doe@acme.io"
        assert not errors

    def test_bad_email(self):
        errors = FieldErrors()
        assert normalize_email(errors, {"email": "nope"}) is None
        assert errors.has("email")

    @pytest.mark.parametrize("raw, expected", [
        ("+1 555-123-4567", "+15551234567"),
        ("0212 555 1234", "02125551234"),
    ])
    def test_phone(self, raw, expected):
        errors = FieldErrors()
        assert normalize_phone(errors, {"phone": raw}) == expected

    @pytest.mark.parametrize("raw", ["12", "phone-number", "+1234567890123456789"])
    def test_bad_phone(self, raw):
        errors = FieldErrors()
        assert normalize_phone(errors, {"phone": raw}) is None
        assert errors.has("phone")

    def test_id_list_rejects_duplicates(self):
        errors = FieldErrors()
        assert parse_id_list(errors, {"ids": [1, 1]}, "ids", max_items=5) is None
        assert errors.has("ids")

    def test_tags(self):
        errors = FieldErrors()
        assert validate_tags(errors, {"tags": ["Urgent", " site "]}) == ["urgent", "site"]
        validate_tags(errors, {"tags": ["a", "A"]})
        assert errors.has("tags")


class TestScopeRules:
    def test_reference_in_other_org(self, world):
        with pytest.raises(ValidationError, match="same organization"):
            resolve_in_scope(Department, world.globex_main.id, world.acme.id, field="department_id")

    def test_target_department_defaults_to_own(self, world, principal_for):
        errors = FieldErrors()
        assert target_department_id(errors, principal_for(world.user), {}) == world.ops.id

    def test_target_department_needs_cross_access(self, world, principal_for):
        errors = FieldErrors()
        target_department_id(errors, principal_for(world.user), {"department_id": world.sales.id})
        assert errors.has("department_id")
        errors = FieldErrors()
        dept = target_department_id(errors, principal_for(world.admin), {"department_id": world.ops.id})
        assert dept == world.ops.id

    def test_department_manager_must_be_hod(self, world):
        with pytest.raises(ValidationError, match="Manager must have"):
            validate_department_manager(world.manager.id, world.acme.id)
        assert validate_department_manager(world.admin.id, world.acme.id).id == world.admin.id


class TestTaskRules:
    def test_routine_task_rejects_low_priority(self, world):
        with pytest.raises(ValidationError) as exc:
            validate_task_payload(
                {"description": "Sweep floors", "priority": "Low", "date": "2030-01-01T08:00:00Z"},
                TaskType.ROUTINE, world.acme.id, world.ops.id,
            )
        assert "RoutineTask priority cannot be Low" in exc.value.message

    def test_project_task_needs_vendor(self, world):
        with pytest.raises(ValidationError, match="Vendor is required"):
            validate_task_payload({"description": "Build", "title": "Wing"},
                                  TaskType.PROJECT, world.acme.id, world.ops.id)

    def test_deleted_vendor_is_conflict(self, world, make_vendor):
        vendor = make_vendor(world.acme)
        vendor.soft_delete()
        db.session.commit()
        with pytest.raises(ConflictError, match="Cannot reference deleted vendor"):
            validate_task_payload(
                {"description": "Build", "title": "Wing", "vendor_id": vendor.id},
                TaskType.PROJECT, world.acme.id, world.ops.id,
            )

    def test_due_date_after_start(self, world, make_vendor):
        vendor = make_vendor(world.acme)
        with pytest.raises(ValidationError, match="Due date must be after start date"):
            validate_task_payload(
                {"description": "Build", "title": "Wing", "vendor_id": vendor.id,
                 "start_date": "2030-02-01", "due_date": "2030-01-01"},
                TaskType.PROJECT, world.acme.id, world.ops.id,
            )

    def test_watchers_must_be_hod(self, world):
        with pytest.raises(ValidationError, match="Watcher must be a head of department"):
            validate_task_payload(
                {"description": "Do it", "title": "Job", "assignee_ids": [world.user.id],
                 "watcher_ids": [world.manager.id]},
                TaskType.ASSIGNED, world.acme.id, world.ops.id,
            )

    def test_assigned_task_needs_assignee(self, world):
        with pytest.raises(ValidationError, match="At least 1 assignees required"):
            validate_task_payload({"description": "Do it", "title": "Job", "assignee_ids": []},
                                  TaskType.ASSIGNED, world.acme.id, world.ops.id)

    def test_routine_materials_must_share_department(self, world, make_material):
        other = make_material(world.acme, world.sales)
        with pytest.raises(ValidationError, match="same department"):
            validate_task_payload(
                {"description": "Restock", "date": "2030-01-01",
                 "materials": [{"material_id": other.id, "quantity": 2}]},
                TaskType.ROUTINE, world.acme.id, world.ops.id,
            )

    def test_valid_assigned_payload(self, world):
        attrs = validate_task_payload(
            {"description": "Do it", "title": "Job", "assignee_ids": [world.user.id],
             "watcher_ids": [world.super_admin.id], "tags": ["ops"]},
            TaskType.ASSIGNED, world.acme.id, world.ops.id,
        )
        assert [u.id for u in attrs["assignees"]] == [world.user.id]
        assert attrs["priority"] == "Medium"
        assert attrs["status"] == "TODO"


class TestActivityAndCommentRules:
    def test_no_activity_on_routine_task(self, world, make_task):
        task = make_task(world.user, kind="RoutineTask")
        with pytest.raises(ValidationError, match="cannot be created for RoutineTask"):
            validate_activity_task(task)

    def test_comment_depth(self, world, make_task):
        task = make_task(world.user)
        kind, parent, depth = resolve_comment_parent("Task", task.id, world.acme.id)
        assert depth == 0
        comment = TaskComment(
            parent_model="Task", parent_id=task.id, content="deep", depth=3,
            organization_id=world.acme.id, department_id=world.ops.id,
            created_by_id=world.user.id,
        )
        db.session.add(comment)
        db.session.commit()
        with pytest.raises(ConflictError, match="Comment depth exceeded"):
            resolve_comment_parent("TaskComment", comment.id, world.acme.id)

    def test_bad_parent_model(self, world):
        with pytest.raises(ValidationError, match="Parent model must be one of"):
            resolve_comment_parent("Vendor", 1, world.acme.id)

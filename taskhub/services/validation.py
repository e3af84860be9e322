"""
Field-level validation chains.

``FieldErrors`` runs every check of a chain and reports them together:

  - one failure is re-raised unchanged (a Conflict stays a Conflict);
  - several failures are merged: the first NotFound/Conflict keeps its kind
    and absorbs the other field messages into ``details``; when every
    failure is a plain rule violation the result is one ValidationError.

The domain rules below are shared by the resource services: same-scope
references, HOD/role rules, task variant rules, material usage, tags,
user lists (watchers, assignees, mentions, recipients) and comment depth.
"""

import logging
import re

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from taskhub.core.exceptions import ConflictError, EngineError, NotFoundError, ValidationError
from taskhub.models.department import Department
from taskhub.models.inventory import Material, Vendor
from taskhub.models.task import (
    MILESTONE_STATUSES,
    RECURRENCE_FREQUENCIES,
    ROUTINE_PRIORITIES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    CommentParent,
    Task,
    TaskActivity,
    TaskComment,
    TaskType,
)
from taskhub.models.user import HOD_ROLES, ROLES, User
from taskhub.services.lifecycle import validate_reference
from taskhub.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_COMMENT_MAX_DEPTH = 3
MAX_TAGS = 5
MAX_TAG_LENGTH = 50
MAX_WATCHERS = 100
MAX_ASSIGNEES = 50
MAX_MENTIONS = 20
MAX_ROUTINE_MATERIALS = 20
MAX_ACTIVITY_MATERIALS = 50
MAX_RECIPIENTS = 1000


class FieldErrors:
    """Collects failures across a validation chain."""

    def __init__(self):
        self.errors: list[tuple[str, EngineError]] = []

    def __bool__(self):
        return bool(self.errors)

    def add(self, field, message):
        self.errors.append((field, ValidationError(message, details={field: message})))

    def check(self, field, fn, /, *args, **kwargs):
        """Run ``fn``; record an engine error against ``field`` and return None."""
        try:
            return fn(*args, **kwargs)
        except (ValidationError, ConflictError, NotFoundError) as exc:
            self.errors.append((field, exc))
            return None

    def has(self, field) -> bool:
        return any(f == field for f, _ in self.errors)

    def raise_if_any(self):
        if not self.errors:
            return
        if len(self.errors) == 1:
            raise self.errors[0][1]

        details = {}
        for field, exc in self.errors:
            details.setdefault(field, exc.message)
        primary = next(
            (exc for _, exc in self.errors if not isinstance(exc, ValidationError)),
            None,
        )
        if primary is None:
            raise ValidationError("Validation failed", details=details)
        primary.details = details
        raise primary


# ═══════════════════════════════════════════════════════════════
# Primitive field checks
# ═══════════════════════════════════════════════════════════════
def require_text(errors, data, field, *, max_length, min_length=1, required=True, label=None):
    """Strip and length-check ``data[field]``; returns the cleaned value."""
    label = label or field.replace("_", " ").capitalize()
    raw = data.get(field)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            errors.add(field, f"{label} is required")
        return None
    if not isinstance(raw, str):
        errors.add(field, f"{label} must be a string")
        return None
    value = raw.strip()
    if len(value) < min_length:
        errors.add(field, f"{label} must be at least {min_length} characters")
    elif len(value) > max_length:
        errors.add(field, f"{label} must not exceed {max_length} characters")
    return value


def require_choice(errors, data, field, choices, *, default=None, label=None):
    label = label or field.replace("_", " ").capitalize()
    value = data.get(field, default)
    if value is None:
        errors.add(field, f"{label} is required")
        return None
    if value not in choices:
        errors.add(field, f"{label} must be one of: {', '.join(sorted(choices))}")
        return None
    return value


def normalize_email(errors, data, field="email", *, required=True, max_length=100):
    raw = data.get(field)
    if not raw:
        if required:
            errors.add(field, "Email is required")
        return None
    try:
        email = validate_email(str(raw).strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        errors.add(field, f"Invalid email address: {exc}")
        return None
    if len(email) > max_length:
        errors.add(field, f"Email must not exceed {max_length} characters")
        return None
    return email


_PHONE_CHARS = re.compile(r"^\+?[0-9][0-9 \-]{5,18}[0-9]$")


def normalize_phone(errors, data, field="phone", *, required=True):
    """Strip separators; ``+`` and 7 to 15 digits."""
    raw = data.get(field)
    if raw in (None, ""):
        if required:
            errors.add(field, "Phone number is required")
        return None
    text = str(raw).strip()
    digits = re.sub(r"[ \-]", "", text)
    if not _PHONE_CHARS.match(text) or not 7 <= len(digits.lstrip("+")) <= 15:
        errors.add(field, "Invalid phone number")
        return None
    return digits


def parse_datetime_field(errors, data, field, *, required=False, label=None):
    label = label or field.replace("_", " ").capitalize()
    raw = data.get(field)
    if raw in (None, ""):
        if required:
            errors.add(field, f"{label} is required")
        return None
    try:
        return parse_datetime(raw)
    except ValueError:
        errors.add(field, f"{label} must be a valid ISO 8601 date")
        return None


def parse_id_list(errors, data, field, *, max_items, min_items=0, label=None):
    """Return a de-duplicated-checked list of integer ids, or None on error."""
    label = label or field.replace("_", " ").capitalize()
    raw = data.get(field, [])
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        errors.add(field, f"{label} must be a list")
        return None
    try:
        ids = [int(v) for v in raw]
    except (TypeError, ValueError):
        errors.add(field, f"{label} must contain valid ids")
        return None
    if len(ids) < min_items:
        errors.add(field, f"At least {min_items} {label.lower()} required")
        return None
    if len(ids) > max_items:
        errors.add(field, f"Cannot exceed {max_items} {label.lower()}")
        return None
    if len(set(ids)) != len(ids):
        errors.add(field, f"Duplicate {label.lower()} are not allowed")
        return None
    return ids


# ═══════════════════════════════════════════════════════════════
# Scope checks
# ═══════════════════════════════════════════════════════════════
def validate_same_scope(entity, expected_org, expected_dept=None, *, field=None):
    """Reject references that cross the organization (or department) boundary."""
    name = type(entity).__name__
    key = field or name.lower()
    if getattr(entity, "organization_id", None) != expected_org:
        message = f"{name} must belong to the same organization"
        raise ValidationError(message, details={key: message})
    if expected_dept is not None and getattr(entity, "department_id", None) != expected_dept:
        message = f"{name} must belong to the same department"
        raise ValidationError(message, details={key: message})


def resolve_in_scope(model, entity_id, org_id, dept_id=None, *, field):
    """Active reference + same-scope check in one step."""
    entity = validate_reference(model, entity_id, field=field)
    validate_same_scope(entity, org_id, dept_id, field=field)
    return entity


def resolve_users(errors, ids, org_id, *, field, require_hod=False, label="User"):
    """Resolve user ids that must be active members of ``org_id``."""
    users = []
    for uid in ids or []:
        user = errors.check(field, resolve_in_scope, User, uid, org_id, field=field)
        if user is None:
            continue
        if require_hod and not user.is_hod:
            errors.add(field, f"{label} must be a head of department")
            continue
        users.append(user)
    return users


def target_department_id(errors, principal, data):
    """Department a new record lands in.

    Defaults to the caller's own department; callers with cross-department
    reach may name another department of their organization.
    """
    requested = data.get("department_id")
    if requested is None or str(requested) == str(principal.department.id):
        return principal.department.id
    if not principal.has_cross_department_access:
        errors.add("department_id", "You can only create records in your own department")
        return None
    department = errors.check(
        "department_id", resolve_in_scope, Department, requested,
        principal.organization.id, field="department_id",
    )
    return department.id if department is not None else None


# ═══════════════════════════════════════════════════════════════
# User / department rules
# ═══════════════════════════════════════════════════════════════
def validate_role_and_hod(errors, role, is_hod):
    if role not in ROLES:
        errors.add("role", f"Role must be one of: {', '.join(ROLES)}")
        return
    if is_hod and role not in HOD_ROLES:
        errors.add("is_hod", "Only SuperAdmin or Admin users can be head of department")


def validate_department_manager(manager_id, org_id):
    """Manager must be an active, same-org SuperAdmin/Admin with ``is_hod``."""
    manager = resolve_in_scope(User, manager_id, org_id, field="manager_id")
    if manager.role not in HOD_ROLES or not manager.is_hod:
        message = "Manager must have SuperAdmin or Admin role with isHod set to true"
        raise ValidationError(message, details={"manager_id": message})
    return manager


# ═══════════════════════════════════════════════════════════════
# Task rules
# ═══════════════════════════════════════════════════════════════
def validate_tags(errors, data):
    raw = data.get("tags", [])
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(t, str) for t in raw):
        errors.add("tags", "Tags must be a list of strings")
        return None
    tags = [t.strip().lower() for t in raw if t.strip()]
    if len(tags) > MAX_TAGS:
        errors.add("tags", f"Cannot exceed {MAX_TAGS} tags")
        return None
    if any(len(t) > MAX_TAG_LENGTH for t in tags):
        errors.add("tags", f"Each tag must not exceed {MAX_TAG_LENGTH} characters")
        return None
    if len(set(tags)) != len(tags):
        errors.add("tags", "Duplicate tags are not allowed")
        return None
    return tags


def validate_priority(errors, task_type: TaskType, priority):
    if priority not in TASK_PRIORITIES:
        errors.add("priority", f"Priority must be one of: {', '.join(TASK_PRIORITIES)}")
        return None
    if task_type is TaskType.ROUTINE and priority not in ROUTINE_PRIORITIES:
        errors.add(
            "priority",
            "RoutineTask priority cannot be Low. Must be Medium, High, or Urgent",
        )
        return None
    return priority


def validate_material_usage(errors, data, org_id, dept_id, *, max_items):
    """``materials: [{material_id, quantity}]`` → list of (Material, quantity)."""
    raw = data.get("materials", [])
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.add("materials", "Materials must be a list")
        return None
    if len(raw) > max_items:
        errors.add("materials", f"Cannot exceed {max_items} materials")
        return None

    seen = set()
    usage = []
    for entry in raw:
        try:
            material_id = int(entry["material_id"])
            quantity = float(entry["quantity"])
        except (KeyError, TypeError, ValueError):
            errors.add("materials", "Each material needs a material_id and a numeric quantity")
            return None
        if material_id in seen:
            errors.add("materials", "Duplicate materials are not allowed")
            return None
        seen.add(material_id)
        if quantity <= 0:
            errors.add("materials", "Material quantity must be greater than 0")
            continue
        material = errors.check(
            "materials", resolve_in_scope, Material, material_id, org_id, dept_id, field="materials",
        )
        if material is not None:
            usage.append((material, quantity))
    return usage


def _project_rules(errors, data, org_id, dept_id, existing=None):
    out = {}
    if "title" in data or existing is None:
        out["title"] = require_text(errors, data, "title", max_length=50)
    if "vendor_id" in data or existing is None:
        if data.get("vendor_id") is None:
            errors.add("vendor_id", "Vendor is required for ProjectTask")
        else:
            out["vendor"] = errors.check(
                "vendor_id", resolve_in_scope, Vendor, data["vendor_id"], org_id, field="vendor_id",
            )
    start = parse_datetime_field(errors, data, "start_date")
    due = parse_datetime_field(errors, data, "due_date")
    if "start_date" in data:
        out["start_date"] = start
    if "due_date" in data:
        out["due_date"] = due
    start = start if "start_date" in data else getattr(existing, "start_date", None)
    due = due if "due_date" in data else getattr(existing, "due_date", None)
    if start and due and not start < due:
        errors.add("due_date", "Due date must be after start date")

    if "milestones" in data:
        milestones = data.get("milestones") or []
        cleaned = []
        if not isinstance(milestones, list):
            errors.add("milestones", "Milestones must be a list")
        else:
            for m in milestones:
                if not isinstance(m, dict) or not str(m.get("name", "")).strip():
                    errors.add("milestones", "Each milestone needs a name")
                    break
                status = m.get("status", "pending")
                if status not in MILESTONE_STATUSES:
                    errors.add("milestones", f"Milestone status must be one of: {', '.join(MILESTONE_STATUSES)}")
                    break
                try:
                    m_due = parse_datetime(m.get("due_date"))
                except ValueError:
                    errors.add("milestones", "Milestone due date must be a valid ISO 8601 date")
                    break
                cleaned.append({
                    "name": str(m["name"]).strip(),
                    "due_date": m_due.isoformat() if m_due else None,
                    "status": status,
                })
        out["milestones"] = cleaned
    return out


def _routine_rules(errors, data, org_id, dept_id, existing=None):
    out = {}
    if "date" in data or existing is None:
        out["date"] = parse_datetime_field(errors, data, "date", required=True)
    start = out.get("date") or getattr(existing, "date", None)

    if "recurrence" in data:
        recurrence = data.get("recurrence")
        if recurrence is None:
            out.update(recurrence_frequency=None, recurrence_interval=None, recurrence_end_date=None)
        elif not isinstance(recurrence, dict):
            errors.add("recurrence", "Recurrence must be an object")
        else:
            frequency = recurrence.get("frequency")
            if frequency not in RECURRENCE_FREQUENCIES:
                errors.add("recurrence", f"Recurrence frequency must be one of: {', '.join(RECURRENCE_FREQUENCIES)}")
            try:
                interval = int(recurrence.get("interval", 1))
            except (TypeError, ValueError):
                interval = 0
            if not 1 <= interval <= 365:
                errors.add("recurrence", "Recurrence interval must be between 1 and 365")
            end_date = parse_datetime_field(errors, recurrence, "end_date")
            if end_date and start and not end_date > start:
                errors.add("recurrence", "Recurrence end date must be after the task date")
            out.update(
                recurrence_frequency=frequency,
                recurrence_interval=interval,
                recurrence_end_date=end_date,
            )

    if "materials" in data:
        out["materials"] = validate_material_usage(
            errors, data, org_id, dept_id, max_items=MAX_ROUTINE_MATERIALS,
        )
    return out


def _assigned_rules(errors, data, org_id, dept_id, existing=None):
    out = {}
    if "title" in data or existing is None:
        out["title"] = require_text(errors, data, "title", max_length=50)
    if "due_date" in data:
        out["due_date"] = parse_datetime_field(errors, data, "due_date")
    if data.get("vendor_id") is not None:
        errors.add("vendor_id", "AssignedTask cannot have a vendor")
    if "assignee_ids" in data or existing is None:
        ids = parse_id_list(
            errors, data, "assignee_ids", min_items=1, max_items=MAX_ASSIGNEES, label="Assignees",
        )
        if ids is not None:
            out["assignees"] = resolve_users(errors, ids, org_id, field="assignee_ids")
    return out


TASK_VARIANT_RULES = {
    TaskType.PROJECT: _project_rules,
    TaskType.ROUTINE: _routine_rules,
    TaskType.ASSIGNED: _assigned_rules,
}

_missing_variants = set(TaskType) - set(TASK_VARIANT_RULES)
if _missing_variants:
    raise RuntimeError(f"Task variants without validation rules: {sorted(_missing_variants)}")


def validate_task_payload(data, task_type: TaskType, org_id, dept_id, existing=None):
    """Validate a task create (``existing`` None) or update payload.

    Returns a dict of cleaned attributes (relationships resolved to entities).
    """
    errors = FieldErrors()
    out = {}
    creating = existing is None

    if creating or "description" in data:
        out["description"] = require_text(errors, data, "description", max_length=5000)
    if creating or "status" in data:
        out["status"] = require_choice(errors, data, "status", TASK_STATUSES, default="TODO")
    if creating or "priority" in data:
        out["priority"] = validate_priority(errors, task_type, data.get("priority", "Medium"))
    if creating or "tags" in data:
        out["tags"] = validate_tags(errors, data)
    if creating or "watcher_ids" in data:
        ids = parse_id_list(errors, data, "watcher_ids", max_items=MAX_WATCHERS, label="Watchers")
        if ids is not None:
            out["watchers"] = resolve_users(
                errors, ids, org_id, field="watcher_ids", require_hod=True, label="Watcher",
            )

    out.update(TASK_VARIANT_RULES[task_type](errors, data, org_id, dept_id, existing))
    errors.raise_if_any()
    return out


# ═══════════════════════════════════════════════════════════════
# Activity / comment rules
# ═══════════════════════════════════════════════════════════════
def validate_activity_task(task):
    if task.kind is TaskType.ROUTINE:
        message = "TaskActivity cannot be created for RoutineTask"
        raise ValidationError(message, details={"task_id": message})
    return task


def _comment_max_depth():
    return current_app.config.get("COMMENT_MAX_DEPTH", DEFAULT_COMMENT_MAX_DEPTH)


_PARENT_MODELS = {
    CommentParent.TASK: Task,
    CommentParent.TASK_ACTIVITY: TaskActivity,
    CommentParent.TASK_COMMENT: TaskComment,
}

if set(CommentParent) - set(_PARENT_MODELS):
    raise RuntimeError("Comment parent types without a model mapping")


def resolve_comment_parent(parent_model, parent_id, org_id):
    """Resolve a comment parent and compute the new comment's depth.

    Raises ConflictError when the parent already sits at the maximum depth.
    """
    try:
        kind = CommentParent(parent_model)
    except ValueError:
        message = f"Parent model must be one of: {', '.join(p.value for p in CommentParent)}"
        raise ValidationError(message, details={"parent_model": message}) from None

    parent = resolve_in_scope(_PARENT_MODELS[kind], parent_id, org_id, field="parent_id")
    depth = parent.depth + 1 if kind is CommentParent.TASK_COMMENT else 0
    max_depth = _comment_max_depth()
    if depth > max_depth:
        raise ConflictError(
            "TaskComment", "depth", depth,
            message=f"Comment depth exceeded: cannot exceed {max_depth} levels",
        )
    return kind, parent, depth

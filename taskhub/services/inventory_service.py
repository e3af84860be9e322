"""
Inventory Service — materials (department scoped) and vendors (organization scoped).
"""

import logging
from decimal import Decimal, InvalidOperation

from taskhub.models import db
from taskhub.models.inventory import MATERIAL_CATEGORIES, VENDOR_STATUSES, Material, Vendor
from taskhub.models.task import ProjectTask
from taskhub.services import cascade
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.uniqueness import validate_unique
from taskhub.services.validation import (
    FieldErrors,
    normalize_email,
    normalize_phone,
    require_choice,
    require_text,
    target_department_id,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# 1. MATERIALS
# ═══════════════════════════════════════════════════════════════
def list_materials(principal, include_deleted=False, category=None):
    q = Material.query.filter(scope_filter(principal, Material, "materials"))
    if not include_deleted:
        q = q.filter(Material.is_deleted.is_(False))
    if category:
        q = q.filter(Material.category == category)
    return q.order_by(Material.name)


def _material_fields(errors, data, creating):
    out = {}
    if creating or "name" in data:
        out["name"] = require_text(errors, data, "name", max_length=100, label="Material name")
    if creating or "unit" in data:
        out["unit"] = require_text(errors, data, "unit", max_length=50)
    if creating or "category" in data:
        out["category"] = require_choice(errors, data, "category", MATERIAL_CATEGORIES,
                                         default="Other")
    if creating or "price" in data:
        try:
            price = Decimal(str(data.get("price", 0)))
        except (InvalidOperation, ValueError):
            price = None
        if price is None or not price.is_finite() or price < 0:
            errors.add("price", "Price must be a positive number")
        else:
            out["price"] = price
    return out


def create_material(principal, data):
    errors = FieldErrors()
    department_id = target_department_id(errors, principal, data)
    fields = _material_fields(errors, data, creating=True)
    errors.raise_if_any()

    material = Material(
        organization_id=principal.organization.id,
        department_id=department_id,
        created_by_id=principal.user_id,
        **fields,
    )
    db.session.add(material)
    commit("create", "Material")
    return material


def update_material(principal, material, data):
    target = validate_exists(Material, material.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    errors = FieldErrors()
    fields = _material_fields(errors, data, creating=False)
    errors.raise_if_any()
    for key, value in fields.items():
        setattr(target, key, value)
    commit("update", "Material")
    return target


def delete_material(principal, material):
    return cascade.cascade_delete(material, deleted_by=principal.user_id)


def restore_material(principal, material):
    return cascade.cascade_restore(material)


# ═══════════════════════════════════════════════════════════════
# 2. VENDORS
# ═══════════════════════════════════════════════════════════════
def list_vendors(principal, include_deleted=False, status=None):
    q = Vendor.query.filter(scope_filter(principal, Vendor, "vendors"))
    if not include_deleted:
        q = q.filter(Vendor.is_deleted.is_(False))
    if status:
        q = q.filter(Vendor.status == status)
    return q.order_by(Vendor.name)


def _vendor_fields(errors, data, organization_id, existing=None):
    out = {}
    creating = existing is None
    exclude_id = getattr(existing, "id", None)
    scope = {"organization_id": organization_id}

    if creating or "name" in data:
        out["name"] = require_text(errors, data, "name", max_length=100, min_length=2,
                                   label="Vendor name")
    if creating or "email" in data:
        out["email"] = normalize_email(errors, data)
    if creating or "phone" in data:
        out["phone"] = normalize_phone(errors, data)
    for field in ("name", "email", "phone"):
        if out.get(field) and not errors.has(field):
            errors.check(field, validate_unique, Vendor, field, out[field], scope=scope,
                         exclude_id=exclude_id, scope_label="organization")

    for field, limit in (("description", 2000), ("contact_person", 100), ("address", 500)):
        if field in data:
            out[field] = require_text(errors, data, field, max_length=limit, required=False)
    if creating or "status" in data:
        out["status"] = require_choice(errors, data, "status", VENDOR_STATUSES, default="Active")
    return out


def create_vendor(principal, data):
    errors = FieldErrors()
    fields = _vendor_fields(errors, data, principal.organization.id)
    errors.raise_if_any()
    vendor = Vendor(
        organization_id=principal.organization.id,
        created_by_id=principal.user_id,
        **fields,
    )
    db.session.add(vendor)
    commit("create", "Vendor")
    return vendor


def update_vendor(principal, vendor, data):
    target = validate_exists(Vendor, vendor.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    errors = FieldErrors()
    fields = _vendor_fields(errors, data, target.organization_id, existing=target)
    errors.raise_if_any()
    for key, value in fields.items():
        setattr(target, key, value)
    commit("update", "Vendor")
    return target


def delete_vendor(principal, vendor):
    in_use = ProjectTask.query.filter(
        ProjectTask.vendor_id == vendor.id, ProjectTask.is_deleted.is_(False),
    ).count()
    if in_use:
        logger.warning(
            "Vendor %s deleted while referenced by %d project tasks", vendor.id, in_use,
            extra={"organization_id": vendor.organization_id, "event_type": "vendor_in_use"},
        )
    return cascade.cascade_delete(vendor, deleted_by=principal.user_id)


def restore_vendor(principal, vendor):
    return cascade.cascade_restore(vendor)

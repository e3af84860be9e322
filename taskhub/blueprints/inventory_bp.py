"""
Inventory Blueprint — materials and vendors.

  GET|POST           /api/v1/materials              — ?category
  GET|PUT|DELETE     /api/v1/materials/<id>
  PATCH              /api/v1/materials/<id>/restore
  GET|POST           /api/v1/vendors                — ?status
  GET|PUT|DELETE     /api/v1/vendors/<id>
  PATCH              /api/v1/vendors/<id>/restore
"""

from flask import Blueprint, g, request

from taskhub.blueprints import (
    deleted_response,
    include_deleted_for,
    json_body,
    list_response,
    success,
)
from taskhub.middleware.jwt_auth import login_required
from taskhub.middleware.permission_required import authorize, document_loader
from taskhub.models.inventory import Material, Vendor
from taskhub.services import inventory_service

inventory_bp = Blueprint("inventory_bp", __name__, url_prefix="/api/v1")

_load_material = document_loader(Material, "material_id")
_load_vendor = document_loader(Vendor, "vendor_id")


# ═══════════════════════════════════════════════════════════════
# 1. MATERIALS
# ═══════════════════════════════════════════════════════════════
@inventory_bp.route("/materials", methods=["GET"])
@login_required
@authorize("materials", "read")
def list_materials():
    principal = g.principal
    return list_response(inventory_service.list_materials(
        principal,
        include_deleted=include_deleted_for(principal, "materials"),
        category=request.args.get("category"),
    ))


@inventory_bp.route("/materials", methods=["POST"])
@login_required
@authorize("materials", "create")
def create_material():
    material = inventory_service.create_material(g.principal, json_body())
    return success(material.to_dict(), status=201)


@inventory_bp.route("/materials/<int:material_id>", methods=["GET"])
@login_required
@authorize("materials", "read", check_scope=True, get_document=_load_material)
def get_material(material_id):
    return success(g.document.to_dict())


@inventory_bp.route("/materials/<int:material_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("materials", "update", check_scope=True, get_document=_load_material)
def update_material(material_id):
    material = inventory_service.update_material(g.principal, g.document, json_body())
    return success(material.to_dict())


@inventory_bp.route("/materials/<int:material_id>", methods=["DELETE"])
@login_required
@authorize("materials", "delete", check_scope=True, get_document=_load_material)
def delete_material(material_id):
    return deleted_response(inventory_service.delete_material(g.principal, g.document))


@inventory_bp.route("/materials/<int:material_id>/restore", methods=["PATCH"])
@login_required
@authorize("materials", "restore", check_scope=True, get_document=_load_material)
def restore_material(material_id):
    material = inventory_service.restore_material(g.principal, g.document)
    return success(material.to_dict())


# ═══════════════════════════════════════════════════════════════
# 2. VENDORS
# ═══════════════════════════════════════════════════════════════
@inventory_bp.route("/vendors", methods=["GET"])
@login_required
@authorize("vendors", "read")
def list_vendors():
    principal = g.principal
    return list_response(inventory_service.list_vendors(
        principal,
        include_deleted=include_deleted_for(principal, "vendors"),
        status=request.args.get("status"),
    ))


@inventory_bp.route("/vendors", methods=["POST"])
@login_required
@authorize("vendors", "create")
def create_vendor():
    vendor = inventory_service.create_vendor(g.principal, json_body())
    return success(vendor.to_dict(), status=201)


@inventory_bp.route("/vendors/<int:vendor_id>", methods=["GET"])
@login_required
@authorize("vendors", "read", check_scope=True, get_document=_load_vendor)
def get_vendor(vendor_id):
    return success(g.document.to_dict())


@inventory_bp.route("/vendors/<int:vendor_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("vendors", "update", check_scope=True, get_document=_load_vendor)
def update_vendor(vendor_id):
    vendor = inventory_service.update_vendor(g.principal, g.document, json_body())
    return success(vendor.to_dict())


@inventory_bp.route("/vendors/<int:vendor_id>", methods=["DELETE"])
@login_required
@authorize("vendors", "delete", check_scope=True, get_document=_load_vendor)
def delete_vendor(vendor_id):
    return deleted_response(inventory_service.delete_vendor(g.principal, g.document))


@inventory_bp.route("/vendors/<int:vendor_id>/restore", methods=["PATCH"])
@login_required
@authorize("vendors", "restore", check_scope=True, get_document=_load_vendor)
def restore_vendor(vendor_id):
    vendor = inventory_service.restore_vendor(g.principal, g.document)
    return success(vendor.to_dict())

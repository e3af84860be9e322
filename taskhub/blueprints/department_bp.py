"""
Department Blueprint — CRUD and lifecycle for departments.

  GET    /api/v1/departments
  POST   /api/v1/departments
  GET    /api/v1/departments/<id>
  PUT    /api/v1/departments/<id>
  DELETE /api/v1/departments/<id>           — cascades to users, tasks, materials
  PATCH  /api/v1/departments/<id>/restore
"""

from flask import Blueprint, g

from taskhub.blueprints import (
    deleted_response,
    include_deleted_for,
    json_body,
    list_response,
    success,
)
from taskhub.middleware.jwt_auth import login_required
from taskhub.middleware.permission_required import authorize, document_loader
from taskhub.models.department import Department
from taskhub.services import department_service

department_bp = Blueprint("department_bp", __name__, url_prefix="/api/v1")

_load = document_loader(Department, "dept_id")


@department_bp.route("/departments", methods=["GET"])
@login_required
@authorize("departments", "read")
def list_departments():
    principal = g.principal
    return list_response(department_service.list_query(
        principal, include_deleted=include_deleted_for(principal, "departments"),
    ))


@department_bp.route("/departments", methods=["POST"])
@login_required
@authorize("departments", "create")
def create_department():
    department = department_service.create_department(g.principal, json_body())
    return success(department.to_dict(), status=201)


@department_bp.route("/departments/<int:dept_id>", methods=["GET"])
@login_required
@authorize("departments", "read", check_scope=True, get_document=_load)
def get_department(dept_id):
    return success(g.document.to_dict())


@department_bp.route("/departments/<int:dept_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("departments", "update", check_scope=True, get_document=_load)
def update_department(dept_id):
    department = department_service.update_department(g.principal, g.document, json_body())
    return success(department.to_dict())


@department_bp.route("/departments/<int:dept_id>", methods=["DELETE"])
@login_required
@authorize("departments", "delete", check_scope=True, get_document=_load)
def delete_department(dept_id):
    return deleted_response(department_service.delete_department(g.principal, g.document))


@department_bp.route("/departments/<int:dept_id>/restore", methods=["PATCH"])
@login_required
@authorize("departments", "restore", check_scope=True, get_document=_load)
def restore_department(dept_id):
    department = department_service.restore_department(g.principal, g.document)
    return success(department.to_dict())

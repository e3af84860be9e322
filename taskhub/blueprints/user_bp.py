"""
User Blueprint — organization members.

  GET    /api/v1/users                    — ?department_id, ?role
  POST   /api/v1/users
  GET    /api/v1/users/<id>
  PUT    /api/v1/users/<id>               — own profile, or Admin/SuperAdmin
  PUT    /api/v1/users/<id>/password      — own password, or users:update in scope
  DELETE /api/v1/users/<id>
  PATCH  /api/v1/users/<id>/restore
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
from taskhub.middleware.permission_required import (
    authorize,
    check_permission,
    document_loader,
    enforce_scope,
)
from taskhub.models.user import User
from taskhub.services import user_service
from taskhub.services.lifecycle import LifecycleMode, validate_exists

user_bp = Blueprint("user_bp", __name__, url_prefix="/api/v1")

_load = document_loader(User, "user_id")


@user_bp.route("/users", methods=["GET"])
@login_required
@authorize("users", "read")
def list_users():
    principal = g.principal
    return list_response(user_service.list_query(
        principal,
        include_deleted=include_deleted_for(principal, "users"),
        department_id=request.args.get("department_id", type=int),
        role=request.args.get("role"),
    ))


@user_bp.route("/users", methods=["POST"])
@login_required
@authorize("users", "create")
def create_user():
    user = user_service.create_user(g.principal, json_body())
    return success(user.to_dict(), status=201)


@user_bp.route("/users/<int:user_id>", methods=["GET"])
@login_required
@authorize("users", "read", check_scope=True, get_document=_load)
def get_user(user_id):
    return success(g.document.to_dict())


@user_bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("users", "update", check_scope=True, get_document=_load)
def update_user(user_id):
    user = user_service.update_user(g.principal, g.document, json_body())
    return success(user.to_dict())


@user_bp.route("/users/<int:user_id>/password", methods=["PUT"])
@login_required
def change_password(user_id):
    """Anyone may change their own password; others need users:update in scope."""
    principal = g.principal
    user = validate_exists(User, user_id, LifecycleMode.MUST_EXIST)
    if user.id != principal.user_id:
        check_permission(principal, "users", "update")
        enforce_scope(principal, "users", "update", user)
    user_service.change_password(principal, user, json_body())
    return success({"id": user.id, "password_changed": True})


@user_bp.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
@authorize("users", "delete", check_scope=True, get_document=_load)
def delete_user(user_id):
    return deleted_response(user_service.delete_user(g.principal, g.document))


@user_bp.route("/users/<int:user_id>/restore", methods=["PATCH"])
@login_required
@authorize("users", "restore", check_scope=True, get_document=_load)
def restore_user(user_id):
    user = user_service.restore_user(g.principal, g.document)
    return success(user.to_dict())

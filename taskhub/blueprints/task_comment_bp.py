"""
Task Comment Blueprint — threaded comments on tasks, activities and comments.

  GET    /api/v1/task-comments              — ?parent_model, ?parent_id
  POST   /api/v1/task-comments
  GET    /api/v1/task-comments/<id>
  PUT    /api/v1/task-comments/<id>
  DELETE /api/v1/task-comments/<id>         — cascades to replies
  PATCH  /api/v1/task-comments/<id>/restore
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
from taskhub.models.task import TaskComment
from taskhub.services import comment_service

task_comment_bp = Blueprint("task_comment_bp", __name__, url_prefix="/api/v1")

_load = document_loader(TaskComment, "comment_id")


@task_comment_bp.route("/task-comments", methods=["GET"])
@login_required
@authorize("task_comments", "read")
def list_comments():
    principal = g.principal
    return list_response(comment_service.list_comments(
        principal,
        parent_model=request.args.get("parent_model"),
        parent_id=request.args.get("parent_id"),
        include_deleted=include_deleted_for(principal, "task_comments"),
    ))


@task_comment_bp.route("/task-comments", methods=["POST"])
@login_required
@authorize("task_comments", "create")
def create_comment():
    comment = comment_service.create_comment(g.principal, json_body())
    return success(comment.to_dict(), status=201)


@task_comment_bp.route("/task-comments/<int:comment_id>", methods=["GET"])
@login_required
@authorize("task_comments", "read", check_scope=True, get_document=_load)
def get_comment(comment_id):
    return success(g.document.to_dict())


@task_comment_bp.route("/task-comments/<int:comment_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("task_comments", "update", check_scope=True, get_document=_load)
def update_comment(comment_id):
    comment = comment_service.update_comment(g.principal, g.document, json_body())
    return success(comment.to_dict())


@task_comment_bp.route("/task-comments/<int:comment_id>", methods=["DELETE"])
@login_required
@authorize("task_comments", "delete", check_scope=True, get_document=_load)
def delete_comment(comment_id):
    return deleted_response(comment_service.delete_comment(g.principal, g.document))


@task_comment_bp.route("/task-comments/<int:comment_id>/restore", methods=["PATCH"])
@login_required
@authorize("task_comments", "restore", check_scope=True, get_document=_load)
def restore_comment(comment_id):
    comment = comment_service.restore_comment(g.principal, g.document)
    return success(comment.to_dict())

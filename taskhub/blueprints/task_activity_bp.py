"""
Task Activity Blueprint — progress entries on ProjectTask / AssignedTask.

  GET    /api/v1/task-activities              — ?task_id
  POST   /api/v1/task-activities
  GET    /api/v1/task-activities/<id>
  PUT    /api/v1/task-activities/<id>
  DELETE /api/v1/task-activities/<id>         — cascades to its comments
  PATCH  /api/v1/task-activities/<id>/restore
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
from taskhub.models.task import TaskActivity
from taskhub.services import comment_service

task_activity_bp = Blueprint("task_activity_bp", __name__, url_prefix="/api/v1")

_load = document_loader(TaskActivity, "activity_id")


@task_activity_bp.route("/task-activities", methods=["GET"])
@login_required
@authorize("task_activities", "read")
def list_activities():
    principal = g.principal
    return list_response(comment_service.list_activities(
        principal,
        task_id=request.args.get("task_id"),
        include_deleted=include_deleted_for(principal, "task_activities"),
    ))


@task_activity_bp.route("/task-activities", methods=["POST"])
@login_required
@authorize("task_activities", "create")
def create_activity():
    activity = comment_service.create_activity(g.principal, json_body())
    return success(activity.to_dict(), status=201)


@task_activity_bp.route("/task-activities/<int:activity_id>", methods=["GET"])
@login_required
@authorize("task_activities", "read", check_scope=True, get_document=_load)
def get_activity(activity_id):
    return success(g.document.to_dict())


@task_activity_bp.route("/task-activities/<int:activity_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("task_activities", "update", check_scope=True, get_document=_load)
def update_activity(activity_id):
    activity = comment_service.update_activity(g.principal, g.document, json_body())
    return success(activity.to_dict())


@task_activity_bp.route("/task-activities/<int:activity_id>", methods=["DELETE"])
@login_required
@authorize("task_activities", "delete", check_scope=True, get_document=_load)
def delete_activity(activity_id):
    return deleted_response(comment_service.delete_activity(g.principal, g.document))


@task_activity_bp.route("/task-activities/<int:activity_id>/restore", methods=["PATCH"])
@login_required
@authorize("task_activities", "restore", check_scope=True, get_document=_load)
def restore_activity(activity_id):
    activity = comment_service.restore_activity(g.principal, g.document)
    return success(activity.to_dict())

"""
Task Blueprint — ProjectTask / RoutineTask / AssignedTask.

  GET    /api/v1/tasks                 — ?task_type, ?status, ?include_deleted
  POST   /api/v1/tasks                 — body.task_type picks the variant
  GET    /api/v1/tasks/<id>
  PUT    /api/v1/tasks/<id>            — creator, assignee or watcher
  DELETE /api/v1/tasks/<id>            — cascades to activities and comments
  PATCH  /api/v1/tasks/<id>/restore
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
from taskhub.models.task import Task
from taskhub.services import task_service

task_bp = Blueprint("task_bp", __name__, url_prefix="/api/v1")

_load = document_loader(Task, "task_id")


@task_bp.route("/tasks", methods=["GET"])
@login_required
@authorize("tasks", "read")
def list_tasks():
    principal = g.principal
    return list_response(task_service.list_query(
        principal,
        task_type=request.args.get("task_type"),
        status=request.args.get("status"),
        include_deleted=include_deleted_for(principal, "tasks"),
    ))


@task_bp.route("/tasks", methods=["POST"])
@login_required
@authorize("tasks", "create")
def create_task():
    task = task_service.create_task(g.principal, json_body())
    return success(task.to_dict(), status=201)


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
@login_required
@authorize("tasks", "read", check_scope=True, get_document=_load)
def get_task(task_id):
    return success(g.document.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("tasks", "update", check_scope=True, get_document=_load)
def update_task(task_id):
    task = task_service.update_task(g.principal, g.document, json_body())
    return success(task.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@login_required
@authorize("tasks", "delete", check_scope=True, get_document=_load)
def delete_task(task_id):
    return deleted_response(task_service.delete_task(g.principal, g.document))


@task_bp.route("/tasks/<int:task_id>/restore", methods=["PATCH"])
@login_required
@authorize("tasks", "restore", check_scope=True, get_document=_load)
def restore_task(task_id):
    task = task_service.restore_task(g.principal, g.document)
    return success(task.to_dict())

"""
Notification Blueprint — the caller's in-app notifications.

  GET    /api/v1/notifications                 — ?unread_only, ?include_expired
  GET    /api/v1/notifications/unread-count
  PATCH  /api/v1/notifications/read-all        — optional body.notification_ids
  GET    /api/v1/notifications/<id>
  PATCH  /api/v1/notifications/<id>/read
  DELETE /api/v1/notifications/<id>

Notifications are created by the services (task assignment, updates,
mentions); there is no create endpoint.
"""

from flask import Blueprint, g

from taskhub.blueprints import deleted_response, flag, json_body, paginate_query, success
from taskhub.core.exceptions import ValidationError
from taskhub.middleware.jwt_auth import login_required
from taskhub.middleware.permission_required import authorize, document_loader
from taskhub.models.notification import Notification
from taskhub.services import cascade
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.notification import NotificationService

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")

_load = document_loader(Notification, "notification_id")


@notification_bp.route("/notifications", methods=["GET"])
@login_required
@authorize("notifications", "read")
def list_notifications():
    principal = g.principal
    items, total = paginate_query(NotificationService.list_for(
        principal,
        unread_only=flag("unread_only"),
        include_expired=flag("include_expired"),
    ))
    return success(
        [n.to_dict(viewer_id=principal.user_id) for n in items],
        total=total,
        unread_count=NotificationService.unread_count(principal.user_id),
    )


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@login_required
@authorize("notifications", "read")
def unread_count():
    return success({"unread_count": NotificationService.unread_count(g.principal.user_id)})


@notification_bp.route("/notifications/read-all", methods=["PATCH"])
@login_required
@authorize("notifications", "update")
def mark_all_read():
    ids = json_body().get("notification_ids")
    if ids is not None:
        if not isinstance(ids, list) or not all(isinstance(i, int) for i in ids):
            message = "notification_ids must be a list of ids"
            raise ValidationError(message, details={"notification_ids": message})
    count = NotificationService.mark_all_read(g.principal, ids)
    return success({"marked": count})


@notification_bp.route("/notifications/<int:notification_id>", methods=["GET"])
@login_required
@authorize("notifications", "read", check_scope=True, get_document=_load)
def get_notification(notification_id):
    return success(g.document.to_dict(viewer_id=g.principal.user_id))


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
@login_required
@authorize("notifications", "update", check_scope=True, get_document=_load)
def mark_read(notification_id):
    notif = validate_exists(Notification, notification_id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    NotificationService.mark_read(notif, g.principal.user_id)
    return success(notif.to_dict(viewer_id=g.principal.user_id))


@notification_bp.route("/notifications/<int:notification_id>", methods=["DELETE"])
@login_required
@authorize("notifications", "delete", check_scope=True, get_document=_load)
def delete_notification(notification_id):
    return deleted_response(cascade.cascade_delete(g.document, deleted_by=g.principal.user_id))

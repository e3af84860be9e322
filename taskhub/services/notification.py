"""
TaskHub
Notification Service.

Two layers:
  - ``notify(recipient_ids, payload)``: fire-and-forget dispatch to the
    real-time emitter registered on the app. Called only after a mutation
    has committed; a failing emitter is logged and never propagates, so it
    cannot roll back the mutation.
  - ``NotificationService``: persisted in-app notifications (create, list,
    mark read).

The emitter is any callable ``emitter(recipient_ids, payload)`` stored in
``app.extensions["taskhub.notifier"]``; the default only logs.
"""

import logging

from flask import current_app
from sqlalchemy import and_, or_

from taskhub.core.exceptions import ValidationError
from taskhub.models import db
from taskhub.models.notification import (
    NOTIFICATION_ENTITY_MODELS,
    NOTIFICATION_TYPES,
    Notification,
    NotificationRecipient,
)
from taskhub.services.helpers.transaction import commit
from taskhub.services.scope_evaluator import scope_filter
from taskhub.utils.helpers import utcnow

logger = logging.getLogger(__name__)

EXTENSION_KEY = "taskhub.notifier"


def log_emitter(recipient_ids, payload):
    logger.debug("notify %s: %s", sorted(recipient_ids), payload.get("event"))


def init_notifier(app, emitter=None):
    """Register the real-time emitter used by ``notify``."""
    app.extensions[EXTENSION_KEY] = emitter or log_emitter


def notify(recipient_ids, payload) -> bool:
    """Dispatch ``payload`` to ``recipient_ids``; returns False on failure."""
    recipients = sorted({int(r) for r in recipient_ids or []})
    if not recipients:
        return True
    emitter = current_app.extensions.get(EXTENSION_KEY, log_emitter)
    try:
        emitter(recipients, payload)
    except Exception:
        logger.exception(
            "Notification dispatch failed for event %s", payload.get("event"),
            extra={"event_type": "notify_failed"},
        )
        return False
    return True


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message, recipient_ids, organization_id, department_id,
               type="SYSTEM_ALERT", entity_model=None, entity_id=None, created_by_id=None):
        """
        Create a notification for one or more recipients (not committed).

        Recipients are expected to be resolved same-organization users.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Invalid notification type {type!r}", details={"type": type})
        if entity_model is not None and entity_model not in NOTIFICATION_ENTITY_MODELS:
            raise ValidationError(
                f"Invalid entity model {entity_model!r}", details={"entity_model": entity_model},
            )
        notif = Notification(
            title=title[:200],
            message=message[:500],
            type=type,
            entity_model=entity_model,
            entity_id=entity_id,
            organization_id=organization_id,
            department_id=department_id,
            created_by_id=created_by_id,
        )
        notif.recipients = [NotificationRecipient(user_id=uid) for uid in sorted(set(recipient_ids))]
        db.session.add(notif)
        return notif

    @staticmethod
    def announce(notif, event):
        """Push a persisted notification through ``notify`` after commit."""
        return notify(notif.recipient_ids, {"event": event, "notification": notif.to_dict()})

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def unread_count(user_id):
        return (
            NotificationRecipient.query
            .join(Notification)
            .filter(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.read_at.is_(None),
                Notification.is_deleted.is_(False),
            )
            .count()
        )

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notif, user_id):
        """Mark ``notif`` read for ``user_id``; no-op if not a recipient."""
        entry = notif.recipient_entry(user_id)
        if entry is not None and entry.read_at is None:
            entry.mark_read()
            commit("update", "Notification")
        return entry


    @staticmethod
    def list_for(principal, *, unread_only=False, include_expired=False):
        """Notifications addressed to ``principal``, newest first."""
        q = Notification.query.filter(
            scope_filter(principal, Notification, "notifications"),
            Notification.recipients.any(user_id=principal.user_id),
            Notification.is_deleted.is_(False),
        )
        if not include_expired:
            q = q.filter(or_(Notification.expires_at.is_(None), Notification.expires_at > utcnow()))
        if unread_only:
            q = q.filter(Notification.recipients.any(
                and_(NotificationRecipient.user_id == principal.user_id,
                     NotificationRecipient.read_at.is_(None)),
            ))
        return q.order_by(Notification.created_at.desc(), Notification.id.desc())

    @staticmethod
    def mark_all_read(principal, notification_ids=None):
        """Mark the caller's unread entries read; returns how many changed."""
        q = (
            NotificationRecipient.query
            .join(Notification)
            .filter(
                NotificationRecipient.user_id == principal.user_id,
                NotificationRecipient.read_at.is_(None),
                Notification.is_deleted.is_(False),
                Notification.organization_id == principal.organization.id,
            )
        )
        if notification_ids is not None:
            q = q.filter(NotificationRecipient.notification_id.in_(notification_ids))
        entries = q.all()
        for entry in entries:
            entry.mark_read()
        commit("update", "Notification")
        return len(entries)

"""
Notification domain model.

Models:
    - Notification: in-app notification addressed to one or more recipients
    - NotificationRecipient: per-recipient read tracking
"""

from datetime import datetime, timedelta, timezone

from taskhub.models import db
from taskhub.models.base import DepartmentModel

# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"TASK_ASSIGNED", "TASK_UPDATED", "COMMENT_ADDED", "MENTION", "SYSTEM_ALERT"}
NOTIFICATION_ENTITY_MODELS = {
    "Task", "TaskActivity", "TaskComment", "User", "Organization",
    "Department", "Material", "Vendor",
}
NOTIFICATION_TTL_DAYS = 30


def _default_expiry():
    return (datetime.now(timezone.utc) + timedelta(days=NOTIFICATION_TTL_DAYS)).replace(tzinfo=None)


class Notification(DepartmentModel):
    """In-app notification entity. One record per event, many recipients."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    type = db.Column(db.String(30), nullable=False, default="SYSTEM_ALERT")

    # Link to source entity
    entity_model = db.Column(db.String(30), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    expires_at = db.Column(db.DateTime, default=_default_expiry)

    recipients = db.relationship(
        "NotificationRecipient", back_populates="notification",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def recipient_ids(self):
        return sorted(r.user_id for r in self.recipients)

    def recipient_entry(self, user_id):
        for entry in self.recipients:
            if entry.user_id == user_id:
                return entry
        return None

    def to_dict(self, viewer_id=None):
        d = {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "entity_model": self.entity_model,
            "entity_id": self.entity_id,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "recipient_ids": self.recipient_ids,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }
        if viewer_id is not None:
            entry = self.recipient_entry(viewer_id)
            d["is_read"] = bool(entry and entry.read_at)
        return d

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"


class NotificationRecipient(db.Model):
    __tablename__ = "notification_recipients"

    notification_id = db.Column(db.Integer, db.ForeignKey("notifications.id"), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    read_at = db.Column(db.DateTime, nullable=True)

    notification = db.relationship("Notification", back_populates="recipients")

    def mark_read(self):
        self.read_at = datetime.now(timezone.utc).replace(tzinfo=None)

"""
Soft Delete Mixin.

Adds ``is_deleted``/``deleted_at``/``deleted_by_id`` columns and query
helpers. Models that include this mixin are never physically removed by
the engine; a soft-deleted row stays readable for audit views and keeps
reserving its unique values within its scope.

Usage:
    class MyModel(SoftDeleteMixin, db.Model):
        ...

    obj.soft_delete(deleted_by=user)
    db.session.commit()

    MyModel.query_active().all()     # live rows only
    MyModel.query.all()              # including soft-deleted
    MyModel.query_deleted().all()    # soft-deleted only

    obj.restore()
    db.session.commit()
"""

from datetime import datetime, timezone

from taskhub.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True, default=None)
    deleted_by_id = db.Column(db.Integer, nullable=True, default=None)

    def soft_delete(self, deleted_by=None):
        """Mark this record as deleted."""
        self.is_deleted = True
        self.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.deleted_by_id = getattr(deleted_by, "id", deleted_by)

    def restore(self):
        """Restore a soft-deleted record."""
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by_id = None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.is_deleted.is_(False))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.is_deleted.is_(True))

    def lifecycle_dict(self) -> dict:
        return {
            "is_deleted": bool(self.is_deleted),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by_id": self.deleted_by_id,
        }

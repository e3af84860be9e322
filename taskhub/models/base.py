"""
Abstract bases for tenant-scoped models.

TenantModel adds:
  - organization_id FK column with index
  - soft-delete and timestamp columns
  - query_for_organization(organization_id) classmethod

DepartmentModel additionally pins the row to one department of that
organization.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from taskhub.models import db
from taskhub.models.soft_delete import SoftDeleteMixin


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class TenantModel(SoftDeleteMixin, TimestampMixin, db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    @declared_attr
    def organization_id(cls):
        return db.Column(
            db.Integer,
            db.ForeignKey("organizations.id"),
            nullable=False,
            index=True,
        )

    @classmethod
    def query_for_organization(cls, organization_id, include_deleted=False):
        """Return a query filtered by organization_id."""
        q = cls.query.filter_by(organization_id=organization_id)
        if not include_deleted:
            q = q.filter(cls.is_deleted.is_(False))
        return q


class DepartmentModel(TenantModel):
    """Abstract base for organization + department scoped tables."""
    __abstract__ = True

    @declared_attr
    def department_id(cls):
        return db.Column(
            db.Integer,
            db.ForeignKey("departments.id"),
            nullable=False,
            index=True,
        )

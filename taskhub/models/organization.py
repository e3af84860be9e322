"""
Organization — the root tenant.

Owns Departments, Users, Tasks, Materials, Vendors and Notifications.
``is_platform_org`` marks the operator's own tenant: it is exempt from
subscription checks, its SuperAdmins get cross-tenant reach, and it can
never be deleted.
"""

from taskhub.models import db
from taskhub.models.base import TimestampMixin
from taskhub.models.soft_delete import SoftDeleteMixin

SUBSCRIPTION_PLANS = ("Free", "Basic", "Pro", "Enterprise")
SUBSCRIPTION_STATUSES = ("Active", "Inactive", "Suspended", "Cancelled", "Expired")

INDUSTRIES = (
    "Technology", "Healthcare", "Finance", "Education", "Retail",
    "Manufacturing", "Construction", "Hospitality", "Transportation",
    "Real Estate", "Agriculture", "Energy", "Telecommunications",
    "Media", "Entertainment", "Legal", "Government", "Non-Profit",
    "Automotive", "Aerospace", "Other",
)


class Organization(SoftDeleteMixin, TimestampMixin, db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(2000))
    email = db.Column(db.String(100), nullable=False, unique=True)
    phone = db.Column(db.String(20), nullable=False, unique=True)
    address = db.Column(db.String(500))
    industry = db.Column(db.String(50), default="Other")
    is_platform_org = db.Column(db.Boolean, nullable=False, default=False, index=True)
    subscription_plan = db.Column(db.String(20), nullable=False, default="Free")
    subscription_status = db.Column(db.String(20), nullable=False, default="Active")
    subscription_expires_at = db.Column(db.DateTime, nullable=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    departments = db.relationship("Department", back_populates="organization", lazy="dynamic")
    users = db.relationship(
        "User", back_populates="organization", lazy="dynamic",
        foreign_keys="User.organization_id",
    )

    def subscription_dict(self):
        return {
            "plan": self.subscription_plan,
            "status": self.subscription_status,
            "expires_at": (
                self.subscription_expires_at.isoformat()
                if self.subscription_expires_at else None
            ),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "industry": self.industry,
            "is_platform_org": self.is_platform_org,
            "subscription": self.subscription_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **self.lifecycle_dict(),
        }

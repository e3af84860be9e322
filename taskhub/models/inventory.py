"""
Inventory models — Material (org + department scoped) and Vendor (org scoped).

Materials are consumed by RoutineTasks and TaskActivities; Vendors are
referenced by ProjectTasks.
"""

from taskhub.models import db
from taskhub.models.base import DepartmentModel, TenantModel

MATERIAL_CATEGORIES = (
    "Electrical", "Mechanical", "Plumbing", "Hardware", "Cleaning",
    "Textiles", "Consumables", "Construction", "Other",
)
VENDOR_STATUSES = ("Active", "Inactive")


class Material(DepartmentModel):
    __tablename__ = "materials"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(50), nullable=False)
    category = db.Column(db.String(30), nullable=False, default="Other")
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        db.Index("ix_materials_org_department", "organization_id", "department_id"),
    )

    department = db.relationship("Department")

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "name": self.name,
            "unit": self.unit,
            "category": self.category,
            "price": float(self.price) if self.price is not None else 0.0,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }


class Vendor(TenantModel):
    __tablename__ = "vendors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(2000))
    contact_person = db.Column(db.String(100))
    email = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    address = db.Column(db.String(500))
    status = db.Column(db.String(20), nullable=False, default="Active")
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_vendor_org_name"),
        db.UniqueConstraint("organization_id", "email", name="uq_vendor_org_email"),
        db.UniqueConstraint("organization_id", "phone", name="uq_vendor_org_phone"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "status": self.status,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }

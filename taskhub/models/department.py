"""Department — belongs to one Organization, optionally led by a HOD manager."""

from taskhub.models import db
from taskhub.models.base import TenantModel


class Department(TenantModel):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(2000))
    manager_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", use_alter=True, name="fk_departments_manager_id"),
        nullable=True,
    )
    created_by_id = db.Column(db.Integer, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_department_org_name"),
    )

    organization = db.relationship("Organization", back_populates="departments")
    manager = db.relationship("User", foreign_keys=[manager_id], post_update=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "manager_id": self.manager_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **self.lifecycle_dict(),
        }

"""
User — belongs to one Organization and one Department.

Roles are ordered SuperAdmin > Admin > Manager > User. ``is_hod`` (head of
department) is valid only for SuperAdmin/Admin, and at most one live HOD
exists per department.
"""

from taskhub.models import db
from taskhub.models.base import DepartmentModel

ROLES = ("SuperAdmin", "Admin", "Manager", "User")
HOD_ROLES = ("SuperAdmin", "Admin")


class User(DepartmentModel):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(20), nullable=False)
    last_name = db.Column(db.String(20), nullable=False)
    position = db.Column(db.String(100))
    email = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(20))
    employee_id = db.Column(db.String(4), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="User")
    is_hod = db.Column(db.Boolean, nullable=False, default=False)
    is_platform_user = db.Column(db.Boolean, nullable=False, default=False)
    password_hash = db.Column(db.String(256))
    last_login_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "email", name="uq_user_org_email"),
        db.UniqueConstraint("organization_id", "employee_id", name="uq_user_org_employee_id"),
        db.Index("ix_users_org_department", "organization_id", "department_id"),
    )

    organization = db.relationship(
        "Organization", back_populates="users", foreign_keys="User.organization_id",
    )
    department = db.relationship("Department", foreign_keys="User.department_id")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "position": self.position,
            "email": self.email,
            "phone": self.phone,
            "employee_id": self.employee_id,
            "role": self.role,
            "is_hod": self.is_hod,
            "is_platform_user": self.is_platform_user,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }

"""
Shared pytest fixtures for the TaskHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - session: Per-test DB create/drop (autouse)
    - client: Flask test client
    - world: two customer organizations plus the platform organization,
      with one user per role (see ``_build_world``)
    - make_org / make_dept / make_user / make_task: factories
    - auth_headers / as_principal: credentials for a given user
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from taskhub import create_app
from taskhub.models import db as _db
from taskhub.models.department import Department
from taskhub.models.inventory import Material, Vendor
from taskhub.models.organization import Organization
from taskhub.models.task import AssignedTask, ProjectTask, RoutineTask
from taskhub.models.user import User
from taskhub.services.jwt_service import generate_access_token
from taskhub.services.session_validator import resolve_user
from taskhub.utils.crypto import hash_password
from taskhub.utils.helpers import utcnow

PASSWORD = "correct-horse-battery"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: fresh tables inside an app context."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


_counter = {"n": 0}


def _next():
    _counter["n"] += 1
    return _counter["n"]


@pytest.fixture()
def make_org():
    def _make(name=None, *, platform=False, status="Active", expires_in_days=None):
        n = _next()
        org = Organization(
            name=name or f"Org {n}",
            email=f"org{n}@acme.io",
            phone=f"+1555{n:07d}",
            is_platform_org=platform,
            subscription_status=status,
            subscription_expires_at=(
                utcnow() + timedelta(days=expires_in_days) if expires_in_days is not None else None
            ),
        )
        _db.session.add(org)
        _db.session.commit()
        return org
    return _make


@pytest.fixture()
def make_dept():
    def _make(org, name=None):
        dept = Department(organization_id=org.id, name=name or f"Dept {_next()}")
        _db.session.add(dept)
        _db.session.commit()
        return dept
    return _make


@pytest.fixture()
def make_user():
    def _make(org, dept, role="User", *, is_hod=False, email=None, employee_id=None):
        n = _next()
        user = User(
            organization_id=org.id,
            department_id=dept.id,
            first_name="Test",
            last_name=f"User{n}"[:20],
            email=email or f"user{n}@acme.io",
            employee_id=employee_id or f"{(n % 5000) + 1000:04d}",
            role=role,
            is_hod=is_hod,
            is_platform_user=org.is_platform_org,
            password_hash=hash_password(PASSWORD),
        )
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_vendor():
    def _make(org, name=None):
        n = _next()
        vendor = Vendor(
            organization_id=org.id,
            name=name or f"Vendor {n}",
            email=f"vendor{n}@acme.io",
            phone=f"+1444{n:07d}",
        )
        _db.session.add(vendor)
        _db.session.commit()
        return vendor
    return _make


@pytest.fixture()
def make_material():
    def _make(org, dept, name=None):
        material = Material(
            organization_id=org.id,
            department_id=dept.id,
            name=name or f"Material {_next()}",
            unit="pcs",
            price=10,
        )
        _db.session.add(material)
        _db.session.commit()
        return material
    return _make


@pytest.fixture()
def make_task(make_vendor):
    def _make(creator, kind="AssignedTask", **kwargs):
        common = dict(
            organization_id=creator.organization_id,
            department_id=kwargs.pop("department_id", creator.department_id),
            created_by_id=creator.id,
            description=kwargs.pop("description", "Replace the lobby lights"),
        )
        if kind == "ProjectTask":
            vendor = kwargs.pop("vendor", None) or make_vendor(creator.organization)
            task = ProjectTask(title="Project", vendor_id=vendor.id, **common, **kwargs)
        elif kind == "RoutineTask":
            task = RoutineTask(date=utcnow(), **common, **kwargs)
        else:
            assignees = kwargs.pop("assignees", None) or [creator]
            task = AssignedTask(title="Assigned", **common, **kwargs)
            task.assignees = assignees
        _db.session.add(task)
        _db.session.commit()
        return task
    return _make


# ── Credentials ──────────────────────────────────────────────────────────


def auth_headers(user):
    token = generate_access_token(user.id, user.organization_id)
    return {"Authorization": f"Bearer {token}"}


def as_principal(user):
    return resolve_user(user.id)


# ── A populated world ────────────────────────────────────────────────────


@pytest.fixture()
def world(make_org, make_dept, make_user):
    """
    acme (customer):  ops  — super_admin (HOD), manager, user
                      sales — admin (HOD), sales_user
    globex (customer): main — globex_admin (HOD)
    platform:          hq   — platform_admin (SuperAdmin)
    """
    acme = make_org("Acme")
    ops = make_dept(acme, "Operations")
    sales = make_dept(acme, "Sales")
    globex = make_org("Globex")
    globex_main = make_dept(globex, "Main")
    platform = make_org("Platform", platform=True)
    hq = make_dept(platform, "HQ")

    return SimpleNamespace(
        acme=acme, ops=ops, sales=sales,
        globex=globex, globex_main=globex_main,
        platform=platform, hq=hq,
        super_admin=make_user(acme, ops, "SuperAdmin", is_hod=True),
        manager=make_user(acme, ops, "Manager"),
        user=make_user(acme, ops, "User"),
        admin=make_user(acme, sales, "Admin", is_hod=True),
        sales_user=make_user(acme, sales, "User"),
        globex_admin=make_user(globex, globex_main, "Admin", is_hod=True),
        platform_admin=make_user(platform, hq, "SuperAdmin", is_hod=True),
    )


@pytest.fixture()
def headers_for():
    return auth_headers


@pytest.fixture()
def principal_for():
    return as_principal


@pytest.fixture()
def password():
    """Plain-text password of every factory-made user."""
    return PASSWORD

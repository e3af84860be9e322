"""
Session Validator — turns a bearer credential into a live Principal.

Every request re-derives the principal from the database: the token only
names the user, while role, organization, department and subscription are
read fresh so that deletions, role changes and lapsed subscriptions take
effect immediately.

Checks, in order (each failure raises UnauthenticatedError):
  1. credential present, signature + expiry + token type valid
  2. user exists                     (looked up including soft-deleted)
  3. user not deleted
  4. organization exists / not deleted
  5. department exists / not deleted
  6. non-platform organization: subscription status is Active
  7. non-platform organization: subscription not past ``expires_at``

Usage:
    principal = authenticate(token)
    maybe_principal = authenticate_optional(token)   # never raises
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

import jwt

from taskhub.core.exceptions import UnauthenticatedError
from taskhub.models.department import Department
from taskhub.models.organization import Organization
from taskhub.models.user import User
from taskhub.services.helpers.scoped_queries import find_by_id
from taskhub.services.jwt_service import decode_access_token, subject_of
from taskhub.utils.helpers import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionSummary:
    plan: str
    status: str
    expires_at: datetime | None


@dataclass(frozen=True)
class OrganizationSummary:
    id: int
    name: str
    is_platform_org: bool
    subscription: SubscriptionSummary


@dataclass(frozen=True)
class DepartmentSummary:
    id: int
    name: str


@dataclass(frozen=True)
class Principal:
    """The resolved, currently-valid identity of the caller."""

    user_id: int
    email: str
    role: str
    is_hod: bool
    is_platform_user: bool
    first_name: str
    last_name: str
    employee_id: str
    organization: OrganizationSummary
    department: DepartmentSummary

    @property
    def is_platform_super_admin(self) -> bool:
        return self.role == "SuperAdmin" and self.is_platform_user

    @property
    def bypasses_ownership(self) -> bool:
        return self.role in ("SuperAdmin", "Admin")

    @property
    def has_cross_department_access(self) -> bool:
        return self.is_hod or self.bypasses_ownership

    def to_dict(self) -> dict:
        d = asdict(self)
        expires_at = self.organization.subscription.expires_at
        d["organization"]["subscription"]["expires_at"] = (
            expires_at.isoformat() if expires_at else None
        )
        return d


def build_principal(user: User, organization: Organization, department: Department) -> Principal:
    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        is_hod=bool(user.is_hod),
        is_platform_user=bool(user.is_platform_user),
        first_name=user.first_name,
        last_name=user.last_name,
        employee_id=user.employee_id,
        organization=OrganizationSummary(
            id=organization.id,
            name=organization.name,
            is_platform_org=bool(organization.is_platform_org),
            subscription=SubscriptionSummary(
                plan=organization.subscription_plan,
                status=organization.subscription_status,
                expires_at=organization.subscription_expires_at,
            ),
        ),
        department=DepartmentSummary(id=department.id, name=department.name),
    )


def check_subscription(organization: Organization, now: datetime | None = None) -> None:
    """Raise UnauthenticatedError if a customer organization's subscription lapsed."""
    if organization.is_platform_org:
        return
    status = organization.subscription_status or "Inactive"
    if status != "Active":
        raise UnauthenticatedError(
            f"Organization subscription is {status.lower()}. "
            "Please contact your administrator."
        )
    expires_at = organization.subscription_expires_at
    if expires_at is not None and expires_at < (now or utcnow()):
        raise UnauthenticatedError(
            "Organization subscription has expired. Please renew your subscription."
        )


def resolve_user(user_id) -> Principal:
    """Re-fetch ``user_id`` and its ownership chain and verify liveness."""
    user = find_by_id(User, user_id, include_deleted=True)
    if user is None:
        raise UnauthenticatedError("User not found")
    if user.is_deleted:
        raise UnauthenticatedError("User account has been deleted")

    organization = find_by_id(Organization, user.organization_id, include_deleted=True)
    if organization is None:
        raise UnauthenticatedError("User organization not found")
    if organization.is_deleted:
        raise UnauthenticatedError("Organization has been deleted")

    department = find_by_id(Department, user.department_id, include_deleted=True)
    if department is None:
        raise UnauthenticatedError("User department not found")
    if department.is_deleted:
        raise UnauthenticatedError("Department has been deleted")

    check_subscription(organization)
    return build_principal(user, organization, department)


def authenticate(credential: str | None) -> Principal:
    """Resolve a bearer credential to a Principal or raise UnauthenticatedError."""
    if not credential:
        raise UnauthenticatedError("Authentication required")

    try:
        payload = decode_access_token(credential)
        user_id = subject_of(payload)
    except jwt.ExpiredSignatureError as exc:
        raise UnauthenticatedError("Access token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise UnauthenticatedError("Invalid access token") from exc

    try:
        principal = resolve_user(user_id)
    except UnauthenticatedError as exc:
        logger.warning(
            "Authentication rejected for user %s: %s", user_id, exc.message,
            extra={"user_id": user_id, "event_type": "auth_rejected"},
        )
        raise

    logger.debug(
        "Authenticated user %s", principal.user_id,
        extra={"user_id": principal.user_id, "organization_id": principal.organization.id},
    )
    return principal


def authenticate_optional(credential: str | None) -> Principal | None:
    """Same resolution as ``authenticate``; any failure yields None."""
    if not credential:
        return None
    try:
        return authenticate(credential)
    except UnauthenticatedError:
        return None

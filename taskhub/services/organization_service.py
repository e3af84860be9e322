"""
Organization Service — read, update, delete and restore tenants.

Organizations are created only through registration (see
``auth_service.register``). ``is_platform_org`` is fixed at creation and
a platform organization is never deleted; both rules are enforced here in
addition to the scope evaluator's organization guard.
"""

import logging

from taskhub.core.exceptions import ForbiddenError
from taskhub.models.organization import (
    INDUSTRIES,
    SUBSCRIPTION_PLANS,
    SUBSCRIPTION_STATUSES,
    Organization,
)
from taskhub.services import cascade
from taskhub.services.helpers.transaction import commit
from taskhub.services.lifecycle import LifecycleMode, validate_exists
from taskhub.services.scope_evaluator import scope_filter
from taskhub.services.uniqueness import validate_unique
from taskhub.services.validation import (
    FieldErrors,
    normalize_email,
    normalize_phone,
    parse_datetime_field,
    require_text,
)
from taskhub.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def list_query(principal, include_deleted=False):
    q = Organization.query.filter(scope_filter(principal, Organization, "organizations"))
    if not include_deleted:
        q = q.filter(Organization.is_deleted.is_(False))
    return q.order_by(Organization.name)


def validate_organization_fields(data, existing=None):
    """Shared by registration (``existing`` None) and update."""
    errors = FieldErrors()
    out = {}
    creating = existing is None
    exclude_id = getattr(existing, "id", None)

    if creating or "name" in data:
        out["name"] = require_text(errors, data, "name", max_length=100, min_length=2)
        if out["name"] and not errors.has("name"):
            errors.check("name", validate_unique, Organization, "name", out["name"],
                         exclude_id=exclude_id)
    if creating or "email" in data:
        out["email"] = normalize_email(errors, data)
        if out["email"]:
            errors.check("email", validate_unique, Organization, "email", out["email"],
                         exclude_id=exclude_id)
    if creating or "phone" in data:
        out["phone"] = normalize_phone(errors, data)
        if out["phone"]:
            errors.check("phone", validate_unique, Organization, "phone", out["phone"],
                         exclude_id=exclude_id)
    if "description" in data:
        out["description"] = require_text(errors, data, "description", max_length=2000,
                                          required=False)
    if creating or "address" in data:
        out["address"] = require_text(errors, data, "address", max_length=500,
                                      required=False)
    if "industry" in data:
        if data["industry"] not in INDUSTRIES:
            errors.add("industry", "Invalid industry")
        else:
            out["industry"] = data["industry"]
    if "is_platform_org" in data and not creating:
        errors.add("is_platform_org", "Cannot modify isPlatformOrg flag after creation")

    subscription = data.get("subscription")
    if subscription is not None and not creating:
        if not isinstance(subscription, dict):
            errors.add("subscription", "Subscription must be an object")
        else:
            if "plan" in subscription:
                if subscription["plan"] not in SUBSCRIPTION_PLANS:
                    errors.add("subscription", f"Invalid subscription plan. Must be one of: "
                                               f"{', '.join(SUBSCRIPTION_PLANS)}")
                else:
                    out["subscription_plan"] = subscription["plan"]
            if "status" in subscription:
                if subscription["status"] not in SUBSCRIPTION_STATUSES:
                    errors.add("subscription", f"Invalid subscription status. Must be one of: "
                                               f"{', '.join(SUBSCRIPTION_STATUSES)}")
                else:
                    out["subscription_status"] = subscription["status"]
            if "expires_at" in subscription:
                expires_at = parse_datetime_field(errors, subscription, "expires_at",
                                                  label="Subscription expiry")
                if expires_at is not None and expires_at < utcnow():
                    errors.add("subscription", "Subscription expiry date cannot be in the past")
                else:
                    out["subscription_expires_at"] = expires_at

    errors.raise_if_any()
    nullable = ("description", "address", "subscription_expires_at")
    return {k: v for k, v in out.items() if v is not None or k in nullable}


def update_organization(principal, organization, data):
    org = validate_exists(Organization, organization.id, LifecycleMode.MUST_EXIST_AND_BE_ACTIVE)
    changes = validate_organization_fields(data, existing=org)
    for key, value in changes.items():
        setattr(org, key, value)
    commit("update", "Organization")
    logger.info("Organization %s updated by user %s", org.id, principal.user_id,
                extra={"organization_id": org.id, "user_id": principal.user_id})
    return org


def delete_organization(principal, organization):
    if organization.is_platform_org:
        raise ForbiddenError("Platform organizations cannot be deleted")
    return cascade.cascade_delete(organization, deleted_by=principal.user_id)


def restore_organization(principal, organization):
    org = cascade.cascade_restore(organization)
    logger.info("Organization %s restored by user %s", org.id, principal.user_id)
    return org


"""
Session validation: token decoding plus the live user → organization →
department → subscription chain.
"""

from datetime import timedelta

import jwt
import pytest

from taskhub.core.exceptions import UnauthenticatedError
from taskhub.models import db
from taskhub.services.jwt_service import generate_access_token, generate_refresh_token
from taskhub.services.session_validator import (
    authenticate,
    authenticate_optional,
    check_subscription,
)
from taskhub.utils.helpers import utcnow


def _token(user):
    return generate_access_token(user.id, user.organization_id)


class TestAuthenticate:
    def test_valid_token_builds_principal(self, world):
        principal = authenticate(_token(world.manager))
        assert principal.user_id == world.manager.id
        assert principal.role == "Manager"
        assert principal.organization.id == world.acme.id
        assert principal.department.id == world.ops.id
        assert principal.organization.subscription.status == "Active"
        assert not principal.is_platform_super_admin

    def test_missing_credential(self):
        with pytest.raises(UnauthenticatedError, match="Authentication required"):
            authenticate(None)

    def test_garbage_token(self, world):
        with pytest.raises(UnauthenticatedError, match="Invalid access token"):
            authenticate("not-a-jwt")

    def test_refresh_token_is_not_an_access_token(self, world):
        token = generate_refresh_token(world.user.id, world.acme.id)
        with pytest.raises(UnauthenticatedError):
            authenticate(token)

    def test_expired_token(self, app, world):
        app.config["JWT_ACCESS_EXPIRES"] = -10
        try:
            token = _token(world.user)
        finally:
            app.config["JWT_ACCESS_EXPIRES"] = 900
        with pytest.raises(UnauthenticatedError, match="expired"):
            authenticate(token)

    def test_wrong_signature(self, world):
        token = jwt.encode({"sub": str(world.user.id), "type": "access"}, "other-secret-key-that-is-long-enough",
                           algorithm="HS256")
        with pytest.raises(UnauthenticatedError):
            authenticate(token)

    def test_unknown_user(self, world):
        token = _token(world.user)
        db.session.delete(world.user)
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="User not found"):
            authenticate(token)

    def test_deleted_user(self, world):
        token = _token(world.user)
        world.user.soft_delete()
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="User account has been deleted"):
            authenticate(token)

    def test_deleted_department(self, world):
        token = _token(world.user)
        world.ops.soft_delete()
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="Department has been deleted"):
            authenticate(token)

    def test_deleted_organization(self, world):
        token = _token(world.user)
        world.acme.soft_delete()
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="Organization has been deleted"):
            authenticate(token)

    def test_inactive_subscription(self, world):
        token = _token(world.user)
        world.acme.subscription_status = "Suspended"
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="subscription is suspended"):
            authenticate(token)

    def test_expired_subscription(self, world):
        token = _token(world.user)
        world.acme.subscription_expires_at = utcnow() - timedelta(days=1)
        db.session.commit()
        with pytest.raises(UnauthenticatedError, match="subscription has expired"):
            authenticate(token)

    def test_platform_org_ignores_subscription(self, world):
        world.platform.subscription_status = "Expired"
        world.platform.subscription_expires_at = utcnow() - timedelta(days=30)
        db.session.commit()
        principal = authenticate(_token(world.platform_admin))
        assert principal.is_platform_super_admin

    def test_role_change_applies_to_existing_token(self, world):
        token = _token(world.user)
        world.user.role = "Manager"
        db.session.commit()
        assert authenticate(token).role == "Manager"


class TestAuthenticateOptional:
    def test_anonymous(self):
        assert authenticate_optional(None) is None

    def test_invalid_token_is_anonymous(self, world):
        assert authenticate_optional("broken") is None

    def test_expired_subscription_is_anonymous(self, world):
        token = _token(world.user)
        world.acme.subscription_status = "Expired"
        db.session.commit()
        assert authenticate_optional(token) is None

    def test_valid_token(self, world):
        assert authenticate_optional(_token(world.admin)).user_id == world.admin.id


class TestCheckSubscription:
    def test_future_expiry_is_fine(self, make_org):
        org = make_org(expires_in_days=10)
        check_subscription(org)

    def test_explicit_now(self, make_org):
        org = make_org(expires_in_days=10)
        with pytest.raises(UnauthenticatedError):
            check_subscription(org, now=utcnow() + timedelta(days=11))


class TestPrincipal:
    def test_cross_department_access(self, world, principal_for):
        assert principal_for(world.admin).has_cross_department_access
        assert principal_for(world.super_admin).has_cross_department_access
        assert not principal_for(world.manager).has_cross_department_access

    def test_hod_flag_grants_cross_department_access(self, world, principal_for):
        # is_hod is normally reserved for Admin/SuperAdmin; the flag alone is what counts
        world.manager.is_hod = True
        db.session.commit()
        assert principal_for(world.manager).has_cross_department_access

    def test_to_dict_is_json_ready(self, world, make_org, make_dept, make_user, principal_for):
        org = make_org(expires_in_days=5)
        user = make_user(org, make_dept(org))
        d = principal_for(user).to_dict()
        assert isinstance(d["organization"]["subscription"]["expires_at"], str)
        assert d["department"]["id"] == user.department_id

"""Organization and department endpoints."""

from datetime import timedelta

from taskhub.models import db
from taskhub.models.user import User
from taskhub.utils.helpers import utcnow


class TestOrganizations:
    def test_customer_lists_only_itself(self, client, world, headers_for):
        body = client.get("/api/v1/organizations", headers=headers_for(world.user)).get_json()
        assert [o["id"] for o in body["data"]] == [world.acme.id]

    def test_platform_super_admin_lists_all(self, client, world, headers_for):
        body = client.get("/api/v1/organizations", headers=headers_for(world.platform_admin)).get_json()
        assert body["total"] == 3

    def test_read_other_org_is_forbidden(self, client, world, headers_for):
        res = client.get(f"/api/v1/organizations/{world.globex.id}", headers=headers_for(world.admin))
        assert res.status_code == 403

    def test_super_admin_updates_own_org(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin),
                         json={"name": "Acme Corp", "industry": "Manufacturing"})
        assert res.status_code == 200
        assert res.get_json()["data"]["name"] == "Acme Corp"

    def test_admin_cannot_update_org(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.admin),
                         json={"name": "Acme Corp"})
        assert res.status_code == 403

    def test_platform_flag_is_immutable(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin),
                         json={"is_platform_org": True})
        assert res.status_code == 422

    def test_subscription_expiry_in_past(self, client, world, headers_for):
        past = (utcnow() - timedelta(days=1)).isoformat()
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin),
                         json={"subscription": {"expires_at": past}})
        assert res.status_code == 422

    def test_subscription_update(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin),
                         json={"subscription": {"plan": "Pro"}})
        assert res.get_json()["data"]["subscription"]["plan"] == "Pro"

    def test_duplicate_name(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin),
                         json={"name": "GLOBEX"})
        assert res.status_code == 409

    def test_platform_super_admin_cannot_modify_customers(self, client, world, headers_for):
        res = client.put(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.platform_admin),
                         json={"name": "Hijacked"})
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Platform SuperAdmin can only read customer organizations"

    def test_platform_org_cannot_be_deleted(self, client, world, headers_for):
        res = client.delete(f"/api/v1/organizations/{world.platform.id}",
                            headers=headers_for(world.platform_admin))
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Platform organizations cannot be deleted"

    def test_platform_super_admin_deletes_customer(self, client, world, headers_for):
        member = headers_for(world.user)
        res = client.delete(f"/api/v1/organizations/{world.acme.id}",
                            headers=headers_for(world.platform_admin))
        assert res.status_code == 200
        assert db.session.get(User, world.user.id).is_deleted
        assert client.get("/api/v1/tasks", headers=member).status_code == 401
        assert client.get("/api/v1/tasks", headers=headers_for(world.globex_admin)).status_code == 200

    def test_platform_super_admin_restores_customer(self, client, world, headers_for):
        platform = headers_for(world.platform_admin)
        assert client.delete(f"/api/v1/organizations/{world.globex.id}", headers=platform).status_code == 200
        res = client.patch(f"/api/v1/organizations/{world.globex.id}/restore", headers=platform)
        assert res.status_code == 200
        assert res.get_json()["data"]["is_deleted"] is False
        # children stay deleted until restored one by one
        assert db.session.get(User, world.globex_admin.id).is_deleted

    def test_customer_super_admin_cannot_delete_own_org(self, client, world, headers_for):
        res = client.delete(f"/api/v1/organizations/{world.acme.id}", headers=headers_for(world.super_admin))
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Only Platform SuperAdmin can delete organizations"
        assert not db.session.get(User, world.user.id).is_deleted

    def test_customer_super_admin_cannot_restore_own_org(self, client, world, headers_for):
        res = client.patch(f"/api/v1/organizations/{world.acme.id}/restore",
                           headers=headers_for(world.super_admin))
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Only Platform SuperAdmin can restore organizations"

    def test_customer_super_admin_cannot_delete_other_org(self, client, world, headers_for):
        res = client.delete(f"/api/v1/organizations/{world.globex.id}", headers=headers_for(world.super_admin))
        assert res.status_code == 403


class TestDepartments:
    def test_super_admin_creates(self, client, world, headers_for):
        res = client.post("/api/v1/departments", json={"name": "Logistics", "manager_id": world.admin.id},
                          headers=headers_for(world.super_admin))
        assert res.status_code == 201
        assert res.get_json()["data"]["manager_id"] == world.admin.id

    def test_admin_cannot_create(self, client, world, headers_for):
        res = client.post("/api/v1/departments", json={"name": "Logistics"}, headers=headers_for(world.admin))
        assert res.status_code == 403

    def test_name_unique_in_org(self, client, world, headers_for):
        res = client.post("/api/v1/departments", json={"name": "operations"},
                          headers=headers_for(world.super_admin))
        assert res.status_code == 409
        assert res.get_json()["error"]["message"] == "Name already exists in this organization"

    def test_manager_must_be_hod(self, client, world, headers_for):
        res = client.post("/api/v1/departments", json={"name": "Logistics", "manager_id": world.manager.id},
                          headers=headers_for(world.super_admin))
        assert res.status_code == 422

    def test_manager_from_other_org(self, client, world, headers_for):
        res = client.post("/api/v1/departments",
                          json={"name": "Logistics", "manager_id": world.globex_admin.id},
                          headers=headers_for(world.super_admin))
        assert res.status_code == 422

    def test_delete_and_restore(self, client, world, headers_for):
        sa = headers_for(world.super_admin)
        res = client.delete(f"/api/v1/departments/{world.sales.id}", headers=sa)
        assert res.status_code == 200
        assert {"type": "User", "id": world.sales_user.id} in res.get_json()["data"]["deleted"]

        res = client.patch(f"/api/v1/departments/{world.sales.id}/restore", headers=sa)
        assert res.status_code == 200
        assert db.session.get(User, world.sales_user.id).is_deleted
        res = client.patch(f"/api/v1/users/{world.sales_user.id}/restore", headers=sa)
        assert res.status_code == 200

    def test_department_with_platform_users_is_protected(self, client, world, headers_for):
        platform = headers_for(world.platform_admin)
        res = client.delete(f"/api/v1/departments/{world.hq.id}", headers=platform)
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Departments with platform users cannot be deleted"
        assert not db.session.get(User, world.platform_admin.id).is_deleted
        assert client.get("/api/v1/auth/me", headers=platform).get_json()["authenticated"] is True

    def test_department_of_last_super_admin_is_protected(self, client, world, headers_for):
        res = client.delete(f"/api/v1/departments/{world.ops.id}", headers=headers_for(world.super_admin))
        assert res.status_code == 409
        assert not db.session.get(User, world.user.id).is_deleted

    def test_update_deleted_department_is_conflict(self, client, world, headers_for):
        sa = headers_for(world.super_admin)
        client.delete(f"/api/v1/departments/{world.sales.id}", headers=sa)
        res = client.put(f"/api/v1/departments/{world.sales.id}", json={"name": "Sales 2"}, headers=sa)
        assert res.status_code == 409

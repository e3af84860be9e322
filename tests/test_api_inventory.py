"""Material and vendor endpoints."""

from taskhub.models import db
from taskhub.models.inventory import Vendor

MATERIAL = {"name": "LED tube", "unit": "pcs", "price": 4.5, "category": "Electrical"}
VENDOR = {"name": "Brightline Supplies", "email": "sales@brightline.io", "phone": "+15559990001"}


class TestMaterials:
    def test_manager_creates_in_own_department(self, client, world, headers_for):
        res = client.post("/api/v1/materials", json=MATERIAL, headers=headers_for(world.manager))
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["department_id"] == world.ops.id
        assert data["price"] == 4.5

    def test_user_cannot_create(self, client, world, headers_for):
        res = client.post("/api/v1/materials", json=MATERIAL, headers=headers_for(world.user))
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "Insufficient permissions to create materials"

    def test_negative_price(self, client, world, headers_for):
        res = client.post("/api/v1/materials", json={**MATERIAL, "price": -1},
                          headers=headers_for(world.manager))
        assert res.status_code == 422
        assert "price" in res.get_json()["error"]["details"]

    def test_manager_cannot_target_other_department(self, client, world, headers_for):
        res = client.post("/api/v1/materials", json={**MATERIAL, "department_id": world.sales.id},
                          headers=headers_for(world.manager))
        assert res.status_code == 422

    def test_list_is_department_scoped(self, client, world, make_material, headers_for):
        mine = make_material(world.acme, world.ops)
        make_material(world.acme, world.sales)
        body = client.get("/api/v1/materials", headers=headers_for(world.user)).get_json()
        assert [m["id"] for m in body["data"]] == [mine.id]

    def test_manager_cannot_delete(self, client, world, make_material, headers_for):
        material = make_material(world.acme, world.ops)
        res = client.delete(f"/api/v1/materials/{material.id}", headers=headers_for(world.manager))
        assert res.status_code == 403

    def test_admin_deletes(self, client, world, make_material, headers_for):
        material = make_material(world.acme, world.sales)
        res = client.delete(f"/api/v1/materials/{material.id}", headers=headers_for(world.admin))
        assert res.status_code == 200
        assert res.get_json()["data"]["type"] == "Material"


class TestVendors:
    def test_admin_creates(self, client, world, headers_for):
        res = client.post("/api/v1/vendors", json=VENDOR, headers=headers_for(world.admin))
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["organization_id"] == world.acme.id
        assert data["status"] == "Active"

    def test_manager_cannot_create(self, client, world, headers_for):
        res = client.post("/api/v1/vendors", json=VENDOR, headers=headers_for(world.manager))
        assert res.status_code == 403

    def test_duplicate_in_org(self, client, world, headers_for):
        client.post("/api/v1/vendors", json=VENDOR, headers=headers_for(world.admin))
        res = client.post("/api/v1/vendors", headers=headers_for(world.super_admin),
                          json={**VENDOR, "email": "other@brightline.io", "phone": "+15559990002"})
        assert res.status_code == 409
        assert res.get_json()["error"]["message"] == "Name already exists in this organization"

    def test_same_name_in_other_org(self, client, world, headers_for):
        client.post("/api/v1/vendors", json=VENDOR, headers=headers_for(world.admin))
        res = client.post("/api/v1/vendors", json=VENDOR, headers=headers_for(world.globex_admin))
        assert res.status_code == 201

    def test_user_lists_org_vendors(self, client, world, make_vendor, headers_for):
        make_vendor(world.acme)
        make_vendor(world.globex)
        body = client.get("/api/v1/vendors", headers=headers_for(world.sales_user)).get_json()
        assert body["total"] == 1

    def test_delete_vendor_in_use(self, client, world, make_task, headers_for):
        task = make_task(world.super_admin, "ProjectTask")
        res = client.delete(f"/api/v1/vendors/{task.vendor_id}", headers=headers_for(world.admin))
        assert res.status_code == 200
        assert db.session.get(Vendor, task.vendor_id).is_deleted

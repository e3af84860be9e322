"""Task activity and task comment endpoints."""

import pytest

from taskhub.models import db
from taskhub.models.notification import Notification
from taskhub.models.task import TaskComment


@pytest.fixture()
def ops_task(world, make_task):
    return make_task(world.user, assignees=[world.user, world.manager])


def _comment(client, headers, parent_model, parent_id, content="Looks good", **extra):
    return client.post("/api/v1/task-comments", headers=headers, json={
        "parent_model": parent_model, "parent_id": parent_id, "content": content, **extra,
    })


class TestActivities:
    def test_add_to_assigned_task(self, client, world, ops_task, headers_for, make_material):
        material = make_material(world.acme, world.ops)
        res = client.post("/api/v1/task-activities", headers=headers_for(world.user), json={
            "task_id": ops_task.id,
            "description": "Replaced two fittings",
            "materials": [{"material_id": material.id, "quantity": 2}],
        })
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["department_id"] == world.ops.id
        assert data["materials"] == [{"material_id": material.id, "quantity": 2.0}]

    def test_routine_task_rejected(self, client, world, make_task, headers_for):
        routine = make_task(world.user, "RoutineTask")
        res = client.post("/api/v1/task-activities", headers=headers_for(world.user),
                          json={"task_id": routine.id, "description": "Swept the floor"})
        assert res.status_code == 422
        assert res.get_json()["error"]["message"] == "TaskActivity cannot be created for RoutineTask"

    def test_other_department_task_forbidden(self, client, world, ops_task, headers_for):
        res = client.post("/api/v1/task-activities", headers=headers_for(world.sales_user),
                          json={"task_id": ops_task.id, "description": "Not my task"})
        assert res.status_code == 403

    def test_list_by_task(self, client, world, ops_task, headers_for):
        h = headers_for(world.user)
        client.post("/api/v1/task-activities", headers=h,
                    json={"task_id": ops_task.id, "description": "First visit"})
        body = client.get(f"/api/v1/task-activities?task_id={ops_task.id}", headers=h).get_json()
        assert body["total"] == 1

    def test_bad_task_filter(self, client, world, headers_for):
        res = client.get("/api/v1/task-activities?task_id=abc", headers=headers_for(world.user))
        assert res.status_code == 422


class TestComments:
    def test_comment_and_reply(self, client, world, ops_task, headers_for):
        h = headers_for(world.user)
        top = _comment(client, h, "Task", ops_task.id).get_json()["data"]
        assert top["depth"] == 0
        reply = _comment(client, h, "TaskComment", top["id"], "Agreed").get_json()["data"]
        assert reply["depth"] == 1
        assert reply["department_id"] == world.ops.id

    def test_thread_depth_is_bounded(self, client, world, ops_task, headers_for):
        h = headers_for(world.user)
        parent = _comment(client, h, "Task", ops_task.id).get_json()["data"]
        for _ in range(3):
            parent = _comment(client, h, "TaskComment", parent["id"]).get_json()["data"]
        assert parent["depth"] == 3
        res = _comment(client, h, "TaskComment", parent["id"])
        assert res.status_code == 409
        assert "Comment depth exceeded" in res.get_json()["error"]["message"]

    def test_unknown_parent_model(self, client, world, ops_task, headers_for):
        res = _comment(client, headers_for(world.user), "Vendor", ops_task.id)
        assert res.status_code == 422

    def test_comment_on_deleted_task(self, client, world, ops_task, headers_for):
        client.delete(f"/api/v1/tasks/{ops_task.id}", headers=headers_for(world.super_admin))
        res = _comment(client, headers_for(world.user), "Task", ops_task.id)
        assert res.status_code == 409

    def test_mentions_notify(self, client, world, ops_task, headers_for):
        res = _comment(client, headers_for(world.user), "Task", ops_task.id,
                       "Can you check this?", mention_ids=[world.manager.id, world.user.id])
        assert res.status_code == 201
        comment_id = res.get_json()["data"]["id"]

        mention = Notification.query.filter_by(type="MENTION", entity_id=comment_id).one()
        assert mention.recipient_ids == [world.manager.id]

        body = client.get("/api/v1/notifications", headers=headers_for(world.manager)).get_json()
        assert any(n["type"] == "MENTION" for n in body["data"])

    def test_mention_outside_org(self, client, world, ops_task, headers_for):
        res = _comment(client, headers_for(world.user), "Task", ops_task.id,
                       mention_ids=[world.globex_admin.id])
        assert res.status_code == 422

    def test_delete_own_comment_cascades_to_replies(self, client, world, ops_task, headers_for):
        h = headers_for(world.user)
        top = _comment(client, h, "Task", ops_task.id).get_json()["data"]
        reply = _comment(client, h, "TaskComment", top["id"]).get_json()["data"]

        res = client.delete(f"/api/v1/task-comments/{top['id']}", headers=h)
        assert res.status_code == 200
        assert res.get_json()["data"]["deleted_count"] == 2
        assert db.session.get(TaskComment, reply["id"]).is_deleted

    def test_cannot_delete_someone_elses_comment(self, client, world, ops_task, headers_for):
        theirs = _comment(client, headers_for(world.manager), "Task", ops_task.id).get_json()["data"]
        res = client.delete(f"/api/v1/task-comments/{theirs['id']}", headers=headers_for(world.user))
        assert res.status_code == 403
        assert res.get_json()["error"]["message"] == "You do not have permission to delete this task comment"

    def test_admin_deletes_any_comment(self, client, world, ops_task, headers_for):
        theirs = _comment(client, headers_for(world.manager), "Task", ops_task.id).get_json()["data"]
        res = client.delete(f"/api/v1/task-comments/{theirs['id']}",
                            headers=headers_for(world.super_admin))
        assert res.status_code == 200

    def test_parent_is_immutable(self, client, world, ops_task, make_task, headers_for):
        h = headers_for(world.user)
        top = _comment(client, h, "Task", ops_task.id).get_json()["data"]
        other = make_task(world.user)
        res = client.put(f"/api/v1/task-comments/{top['id']}", headers=h,
                         json={"parent_id": other.id})
        assert res.status_code == 422

"""
Cascade integrity: soft delete propagates down the ownership tree in one
transaction; restore checks the whole ancestor chain and restores only
the requested entity.
"""

import pytest

from taskhub.core.exceptions import ConflictError
from taskhub.models import db
from taskhub.models.task import TaskActivity, TaskComment
from taskhub.services.cascade import (
    ancestors,
    cascade_delete,
    cascade_restore,
    first_deleted_ancestor,
)


@pytest.fixture()
def tree(world, make_task, make_material):
    """task → activity → comment → reply, all in acme/ops."""
    task = make_task(world.user, kind="ProjectTask")
    activity = TaskActivity(
        task_id=task.id, description="Pulled new cable",
        organization_id=task.organization_id, department_id=task.department_id,
        created_by_id=world.user.id,
    )
    db.session.add(activity)
    db.session.flush()
    comment = TaskComment(
        parent_model="TaskActivity", parent_id=activity.id, content="Looks good", depth=0,
        organization_id=task.organization_id, department_id=task.department_id,
        created_by_id=world.manager.id,
    )
    db.session.add(comment)
    db.session.flush()
    reply = TaskComment(
        parent_model="TaskComment", parent_id=comment.id, content="Thanks", depth=1,
        organization_id=task.organization_id, department_id=task.department_id,
        created_by_id=world.user.id,
    )
    db.session.add(reply)
    db.session.commit()
    material = make_material(world.acme, world.ops)
    return task, activity, comment, reply, material


def _refresh(*entities):
    for e in entities:
        db.session.refresh(e)


class TestDelete:
    def test_task_delete_reaches_grandchildren(self, world, tree):
        task, activity, comment, reply, _ = tree
        summary = cascade_delete(task, deleted_by=world.admin.id)
        _refresh(task, activity, comment, reply)
        assert all(e.is_deleted for e in (task, activity, comment, reply))
        assert reply.deleted_by_id == world.admin.id
        assert ("TaskComment", reply.id) in summary["deleted"]
        assert summary["root"] == ("Task", task.id)

    def test_department_delete_spans_all_dependents(self, world, tree):
        task, activity, comment, reply, material = tree
        cascade_delete(world.ops)
        _refresh(world.user, world.manager, task, reply, material, world.sales_user)
        assert world.user.is_deleted and world.manager.is_deleted
        assert task.is_deleted and reply.is_deleted and material.is_deleted
        assert not world.sales_user.is_deleted

    def test_organization_delete(self, world, tree):
        task, *_ = tree
        summary = cascade_delete(world.acme)
        _refresh(world.sales, world.admin, task)
        assert world.sales.is_deleted and world.admin.is_deleted and task.is_deleted
        assert not world.globex.is_deleted
        assert len(summary["deleted"]) >= 10

    def test_deleted_users_stop_managing_departments(self, world):
        world.ops.manager_id = world.admin.id
        db.session.commit()
        cascade_delete(world.sales)
        _refresh(world.ops, world.admin)
        assert world.admin.is_deleted
        assert world.ops.manager_id is None
        assert not world.ops.is_deleted

    def test_second_delete_is_conflict(self, world, tree):
        task, *_ = tree
        cascade_delete(task)
        with pytest.raises(ConflictError, match="already deleted"):
            cascade_delete(task)

    def test_already_deleted_children_keep_their_metadata(self, world, tree):
        task, activity, comment, reply, _ = tree
        cascade_delete(reply, deleted_by=world.user.id)
        _refresh(reply)
        first_stamp = reply.deleted_at
        cascade_delete(task, deleted_by=world.admin.id)
        _refresh(reply)
        assert reply.deleted_by_id == world.user.id
        assert reply.deleted_at == first_stamp

    def test_depth_bound(self, app, world, tree):
        task, activity, *_ = tree
        app.config["CASCADE_MAX_DEPTH"] = 1
        try:
            cascade_delete(world.acme)
        finally:
            app.config["CASCADE_MAX_DEPTH"] = 10
        _refresh(task, activity)
        assert task.is_deleted
        assert not activity.is_deleted


class TestRestore:
    def test_restore_only_the_root(self, world, tree):
        task, activity, comment, reply, _ = tree
        cascade_delete(task)
        cascade_restore(task)
        _refresh(task, activity)
        assert not task.is_deleted
        assert activity.is_deleted

    def test_blocked_by_deleted_parent(self, world, tree):
        task, activity, *_ = tree
        cascade_delete(task)
        with pytest.raises(ConflictError, match="parent task is deleted"):
            cascade_restore(activity)

    def test_blocked_by_deleted_grandparent(self, world, tree):
        task, activity, comment, reply, _ = tree
        cascade_delete(task)
        for entity in (task, activity, comment):
            cascade_restore(entity)
        task.soft_delete()
        db.session.commit()
        # comment and activity are live; the task above them is not
        with pytest.raises(ConflictError, match="parent task is deleted"):
            cascade_restore(reply)

    def test_restore_chain_top_down(self, world, tree):
        task, activity, comment, reply, _ = tree
        cascade_delete(task)
        for entity in (task, activity, comment, reply):
            cascade_restore(entity)
        _refresh(reply)
        assert not reply.is_deleted
        assert reply.deleted_at is None and reply.deleted_by_id is None

    def test_restore_active_entity_is_conflict(self, world, tree):
        task, *_ = tree
        with pytest.raises(ConflictError, match="not deleted"):
            cascade_restore(task)

    def test_user_restore_blocked_by_department(self, world):
        cascade_delete(world.ops)
        with pytest.raises(ConflictError, match="parent department is deleted"):
            cascade_restore(world.user)


class TestAncestors:
    def test_nearest_first(self, world, tree):
        task, activity, comment, reply, _ = tree
        chain = [type(a).__name__ for a in ancestors(reply)]
        assert chain[:3] == ["TaskComment", "TaskActivity", "ProjectTask"]
        assert "Organization" in chain

    def test_first_deleted_ancestor(self, world, tree):
        task, activity, comment, reply, _ = tree
        assert first_deleted_ancestor(reply) is None
        world.ops.soft_delete()
        db.session.commit()
        assert first_deleted_ancestor(reply).id == world.ops.id

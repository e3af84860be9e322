"""
Task models — the polymorphic Task hierarchy, TaskActivity and TaskComment.

Tasks use single-table inheritance keyed on ``task_type``:
  - ProjectTask:  vendor-outsourced work with milestones
  - RoutineTask:  recurring work that consumes materials directly
  - AssignedTask: work handed to one or more assignees

TaskComment parents are polymorphic over Task / TaskActivity / TaskComment
(``parent_model`` + ``parent_id``); ``depth`` counts nesting below the
first comment on a Task or TaskActivity.
"""

import enum

from taskhub.models import db
from taskhub.models.base import DepartmentModel

TASK_STATUSES = ("TODO", "IN_PROGRESS", "COMPLETED", "PENDING")
TASK_PRIORITIES = ("Low", "Medium", "High", "Urgent")
ROUTINE_PRIORITIES = ("Medium", "High", "Urgent")
RECURRENCE_FREQUENCIES = ("daily", "weekly", "monthly")
MILESTONE_STATUSES = ("pending", "in_progress", "completed")


class TaskType(str, enum.Enum):
    PROJECT = "ProjectTask"
    ROUTINE = "RoutineTask"
    ASSIGNED = "AssignedTask"


class CommentParent(str, enum.Enum):
    TASK = "Task"
    TASK_ACTIVITY = "TaskActivity"
    TASK_COMMENT = "TaskComment"


task_watchers = db.Table(
    "task_watchers",
    db.Column("task_id", db.Integer, db.ForeignKey("tasks.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)

task_assignees = db.Table(
    "task_assignees",
    db.Column("task_id", db.Integer, db.ForeignKey("tasks.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)

comment_mentions = db.Table(
    "comment_mentions",
    db.Column("comment_id", db.Integer, db.ForeignKey("task_comments.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)


# ═══════════════════════════════════════════════════════════════
# 1. TASKS
# ═══════════════════════════════════════════════════════════════
class Task(DepartmentModel):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    task_type = db.Column(db.String(20), nullable=False, index=True)
    title = db.Column(db.String(50))
    description = db.Column(db.String(5000), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="TODO")
    priority = db.Column(db.String(20), nullable=False, default="Medium")
    due_date = db.Column(db.DateTime)
    tags = db.Column(db.JSON, default=list)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    __mapper_args__ = {"polymorphic_on": task_type}

    created_by = db.relationship("User", foreign_keys=[created_by_id])
    department = db.relationship("Department")
    watchers = db.relationship("User", secondary=task_watchers, lazy="selectin")
    activities = db.relationship("TaskActivity", back_populates="task", lazy="dynamic")

    @property
    def kind(self) -> TaskType:
        return TaskType(self.task_type)

    def to_dict(self):
        return {
            "id": self.id,
            "task_type": self.task_type,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "tags": list(self.tags or []),
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "created_by_id": self.created_by_id,
            "watcher_ids": sorted(u.id for u in self.watchers),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **self.lifecycle_dict(),
        }


class ProjectTask(Task):
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)
    start_date = db.Column(db.DateTime)
    milestones = db.Column(db.JSON, default=list)

    __mapper_args__ = {"polymorphic_identity": TaskType.PROJECT.value}

    vendor = db.relationship("Vendor")

    def to_dict(self):
        d = super().to_dict()
        d.update({
            "vendor_id": self.vendor_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "milestones": list(self.milestones or []),
        })
        return d


class RoutineTask(Task):
    date = db.Column(db.DateTime)
    recurrence_frequency = db.Column(db.String(10))
    recurrence_interval = db.Column(db.Integer)
    recurrence_end_date = db.Column(db.DateTime)

    __mapper_args__ = {"polymorphic_identity": TaskType.ROUTINE.value}

    materials = db.relationship(
        "RoutineTaskMaterial", back_populates="task",
        cascade="all, delete-orphan", lazy="selectin",
    )

    def to_dict(self):
        d = super().to_dict()
        recurrence = None
        if self.recurrence_frequency:
            recurrence = {
                "frequency": self.recurrence_frequency,
                "interval": self.recurrence_interval,
                "end_date": (
                    self.recurrence_end_date.isoformat() if self.recurrence_end_date else None
                ),
            }
        d.update({
            "date": self.date.isoformat() if self.date else None,
            "recurrence": recurrence,
            "materials": [m.to_dict() for m in self.materials],
        })
        return d


class AssignedTask(Task):
    __mapper_args__ = {"polymorphic_identity": TaskType.ASSIGNED.value}

    assignees = db.relationship("User", secondary=task_assignees, lazy="selectin")

    def to_dict(self):
        d = super().to_dict()
        d["assignee_ids"] = sorted(u.id for u in self.assignees)
        return d


class RoutineTaskMaterial(db.Model):
    __tablename__ = "routine_task_materials"

    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), primary_key=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)

    task = db.relationship("RoutineTask", back_populates="materials")
    material = db.relationship("Material")

    def to_dict(self):
        return {"material_id": self.material_id, "quantity": float(self.quantity)}


# ═══════════════════════════════════════════════════════════════
# 2. TASK ACTIVITIES
# ═══════════════════════════════════════════════════════════════
class TaskActivity(DepartmentModel):
    __tablename__ = "task_activities"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=False, index=True)
    description = db.Column(db.String(2000), nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    task = db.relationship("Task", back_populates="activities")
    materials = db.relationship(
        "ActivityMaterial", back_populates="activity",
        cascade="all, delete-orphan", lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "description": self.description,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "created_by_id": self.created_by_id,
            "materials": [m.to_dict() for m in self.materials],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }


class ActivityMaterial(db.Model):
    __tablename__ = "activity_materials"

    activity_id = db.Column(db.Integer, db.ForeignKey("task_activities.id"), primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), primary_key=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)

    activity = db.relationship("TaskActivity", back_populates="materials")
    material = db.relationship("Material")

    def to_dict(self):
        return {"material_id": self.material_id, "quantity": float(self.quantity)}


# ═══════════════════════════════════════════════════════════════
# 3. TASK COMMENTS
# ═══════════════════════════════════════════════════════════════
class TaskComment(DepartmentModel):
    __tablename__ = "task_comments"

    id = db.Column(db.Integer, primary_key=True)
    parent_model = db.Column(db.String(20), nullable=False)
    parent_id = db.Column(db.Integer, nullable=False)
    content = db.Column(db.String(2000), nullable=False)
    depth = db.Column(db.Integer, nullable=False, default=0)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        db.Index("ix_task_comments_parent", "parent_model", "parent_id"),
    )

    mentions = db.relationship("User", secondary=comment_mentions, lazy="selectin")

    def to_dict(self):
        return {
            "id": self.id,
            "parent_model": self.parent_model,
            "parent_id": self.parent_id,
            "content": self.content,
            "depth": self.depth,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "created_by_id": self.created_by_id,
            "mention_ids": sorted(u.id for u in self.mentions),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.lifecycle_dict(),
        }

"""Project, phase and task models."""

from typing import Optional

from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from sampha.models.base import Base, PrefixedIdMixin

PROJECT_STATUSES = ("active", "archived")
DEPENDENCY_TYPES = ("blocks", "relatesTo")
ACTIVITY_ENTITY_TYPES = ("task", "project", "phase")


class Project(Base, PrefixedIdMixin):
    """Project entity."""

    __tablename__ = "projects"
    __table_args__ = (Index("idx_projects_workspace", "workspace_id"),)
    _id_prefix = "proj_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # active | archived
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    start_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    end_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_by: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )


class Phase(Base, PrefixedIdMixin):
    """Ordered segment of a project's timeline."""

    __tablename__ = "phases"
    __table_args__ = (Index("idx_phases_project", "project_id"),)
    _id_prefix = "ph_"

    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("projects.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    start_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    end_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Task(Base, PrefixedIdMixin):
    """Task entity.

    ``workspace_id`` is denormalised from the project so workspace-wide
    listing and deletion do not need a join.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_workspace", "workspace_id"),
        Index("idx_tasks_project", "project_id"),
        Index("idx_tasks_phase", "phase_id"),
    )
    _id_prefix = "task_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("projects.id"), nullable=False
    )
    phase_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("phases.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    due_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    assignee_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    watcher_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_by: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Subtask(Base, PrefixedIdMixin):
    """Checklist item under a task."""

    __tablename__ = "subtasks"
    __table_args__ = (Index("idx_subtasks_task", "task_id"),)
    _id_prefix = "sub_"

    task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TaskDependency(Base, PrefixedIdMixin):
    """Directed edge between two tasks of the same workspace."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        Index("idx_task_dependencies_workspace", "workspace_id"),
        Index("idx_task_dependencies_from", "from_task_id"),
        Index("idx_task_dependencies_to", "to_task_id"),
    )
    _id_prefix = "dep_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    from_task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id"), nullable=False
    )
    to_task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id"), nullable=False
    )
    # blocks | relatesTo
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="blocks")


class Comment(Base, PrefixedIdMixin):
    """User comment on a task."""

    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_workspace", "workspace_id"),
        Index("idx_comments_task", "task_id"),
    )
    _id_prefix = "cmt_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    edited_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class Activity(Base, PrefixedIdMixin):
    """Audit trail entry for a task, project or phase.

    ``entity_id`` is a plain string (no foreign key) because it may point at
    any of the three tables.
    """

    __tablename__ = "activities"
    __table_args__ = (
        Index("idx_activities_workspace", "workspace_id"),
        Index("idx_activities_entity", "entity_id"),
    )
    _id_prefix = "act_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    # task | project | phase
    entity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    activity_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

"""Workspace (tenant) models: membership, per-user UI state, status configs."""

from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from sampha.models.base import Base, PrefixedIdMixin

WORKSPACE_TYPES = ("private", "shared")
MEMBER_ROLES = ("admin", "member")
VIEW_TYPES = ("timeline", "calendar", "kanban")


class Workspace(Base, PrefixedIdMixin):
    """Tenant root. Every other workspace-scoped row hangs off one of these."""

    __tablename__ = "workspaces"
    __table_args__ = (Index("idx_workspaces_slug", "slug", unique=True),)
    _id_prefix = "ws_"

    name: Mapped[str] = mapped_column(String(256), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), nullable=False)
    # private | shared
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="shared")
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_by: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )


class WorkspaceMember(Base, PrefixedIdMixin):
    """A user's membership (and role) in a workspace."""

    __tablename__ = "workspace_members"
    __table_args__ = (
        Index("idx_workspace_members_workspace", "workspace_id"),
        Index("idx_workspace_members_user", "user_id"),
        Index(
            "idx_workspace_members_workspace_user",
            "workspace_id",
            "user_id",
            unique=True,
        ),
    )
    _id_prefix = "mem_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    # admin | member
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member")
    joined_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class UserWorkspaceState(Base, PrefixedIdMixin):
    """Remembered UI state for one user inside one workspace."""

    __tablename__ = "user_workspace_states"
    __table_args__ = (
        Index("idx_user_workspace_states_user_workspace", "user_id", "workspace_id"),
        Index("idx_user_workspace_states_workspace", "workspace_id"),
    )
    _id_prefix = "uws_"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    last_viewed_project_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    last_view: Mapped[str] = mapped_column(String(16), nullable=False, default="timeline")
    timeline_zoom_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    collapsed_project_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class StatusConfig(Base, PrefixedIdMixin):
    """A task status available in a workspace (board column / legend entry)."""

    __tablename__ = "status_configs"
    __table_args__ = (Index("idx_status_configs_workspace", "workspace_id"),)
    _id_prefix = "st_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="sky")
    is_terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# Seeded into every new workspace.
DEFAULT_STATUS_CONFIGS = [
    {"name": "todo", "order": 0, "color": "sky", "is_terminal": False},
    {"name": "in_progress", "order": 1, "color": "amber", "is_terminal": False},
    {"name": "done", "order": 2, "color": "emerald", "is_terminal": True},
]

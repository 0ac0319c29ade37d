"""initial_schema

Creates the full sampha schema:
- users, user_sessions, user_preferences
- workspaces, workspace_members, user_workspace_states, status_configs
- projects, phases, tasks, subtasks, task_dependencies, comments, activities
- notifications
- github_connections, github_links, external_comments

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=64), nullable=False)


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name, sa.String(length=64), sa.ForeignKey(f"{target}.id"), nullable=nullable
    )


def upgrade() -> None:
    """Create all tables."""

    # ─── Users ────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_users_email", "users", ["email"])
    op.create_index("idx_users_is_deleted", "users", ["is_deleted"])

    op.create_table(
        "user_sessions",
        _id(),
        _fk("user_id", "users"),
        sa.Column("refresh_token_hash", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_sessions_user", "user_sessions", ["user_id"])
    op.create_index(
        "idx_user_sessions_refresh_hash",
        "user_sessions",
        ["refresh_token_hash"],
        unique=True,
    )

    op.create_table(
        "user_preferences",
        _id(),
        _fk("user_id", "users"),
        sa.Column("notification_settings", sa.JSON(), nullable=False),
        sa.Column(
            "default_view", sa.String(length=16), nullable=False, server_default="timeline"
        ),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_user_preferences_user", "user_preferences", ["user_id"], unique=True
    )

    # ─── Workspaces ───────────────────────────────────────────────────────
    op.create_table(
        "workspaces",
        _id(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="shared"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        _fk("created_by", "users"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_workspaces_slug", "workspaces", ["slug"], unique=True)

    op.create_table(
        "workspace_members",
        _id(),
        _fk("workspace_id", "workspaces"),
        _fk("user_id", "users"),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_workspace_members_workspace", "workspace_members", ["workspace_id"]
    )
    op.create_index("idx_workspace_members_user", "workspace_members", ["user_id"])
    op.create_index(
        "idx_workspace_members_workspace_user",
        "workspace_members",
        ["workspace_id", "user_id"],
        unique=True,
    )

    op.create_table(
        "user_workspace_states",
        _id(),
        _fk("user_id", "users"),
        _fk("workspace_id", "workspaces"),
        sa.Column("last_viewed_project_id", sa.String(length=64), nullable=True),
        sa.Column(
            "last_view", sa.String(length=16), nullable=False, server_default="timeline"
        ),
        sa.Column(
            "timeline_zoom_level", sa.Integer(), nullable=False, server_default="1"
        ),
        sa.Column("collapsed_project_ids", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_user_workspace_states_user_workspace",
        "user_workspace_states",
        ["user_id", "workspace_id"],
    )
    op.create_index(
        "idx_user_workspace_states_workspace", "user_workspace_states", ["workspace_id"]
    )

    op.create_table(
        "status_configs",
        _id(),
        _fk("workspace_id", "workspaces"),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("color", sa.String(length=32), nullable=False, server_default="sky"),
        sa.Column("is_terminal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_status_configs_workspace", "status_configs", ["workspace_id"])

    # ─── Projects / phases / tasks ────────────────────────────────────────
    op.create_table(
        "projects",
        _id(),
        _fk("workspace_id", "workspaces"),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("start_date", sa.BigInteger(), nullable=True),
        sa.Column("end_date", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        _fk("created_by", "users"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_projects_workspace", "projects", ["workspace_id"])

    op.create_table(
        "phases",
        _id(),
        _fk("project_id", "projects"),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("start_date", sa.BigInteger(), nullable=True),
        sa.Column("end_date", sa.BigInteger(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_phases_project", "phases", ["project_id"])

    op.create_table(
        "tasks",
        _id(),
        _fk("workspace_id", "workspaces"),
        _fk("project_id", "projects"),
        _fk("phase_id", "phases"),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("start_date", sa.BigInteger(), nullable=False),
        sa.Column("due_date", sa.BigInteger(), nullable=False),
        sa.Column("assignee_ids", sa.JSON(), nullable=False),
        sa.Column("watcher_ids", sa.JSON(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=True),
        _fk("created_by", "users"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_tasks_workspace", "tasks", ["workspace_id"])
    op.create_index("idx_tasks_project", "tasks", ["project_id"])
    op.create_index("idx_tasks_phase", "tasks", ["phase_id"])

    op.create_table(
        "subtasks",
        _id(),
        _fk("task_id", "tasks"),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_subtasks_task", "subtasks", ["task_id"])

    op.create_table(
        "task_dependencies",
        _id(),
        _fk("workspace_id", "workspaces"),
        _fk("from_task_id", "tasks"),
        _fk("to_task_id", "tasks"),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="blocks"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_task_dependencies_workspace", "task_dependencies", ["workspace_id"]
    )
    op.create_index("idx_task_dependencies_from", "task_dependencies", ["from_task_id"])
    op.create_index("idx_task_dependencies_to", "task_dependencies", ["to_task_id"])

    op.create_table(
        "comments",
        _id(),
        _fk("workspace_id", "workspaces"),
        _fk("task_id", "tasks"),
        _fk("author_id", "users"),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("edited_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_comments_workspace", "comments", ["workspace_id"])
    op.create_index("idx_comments_task", "comments", ["task_id"])

    # entity_id may reference a task, project or phase: no foreign key
    op.create_table(
        "activities",
        _id(),
        _fk("workspace_id", "workspaces"),
        sa.Column("entity_type", sa.String(length=16), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        _fk("actor_id", "users"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_activities_workspace", "activities", ["workspace_id"])
    op.create_index("idx_activities_entity", "activities", ["entity_id"])

    # ─── Notifications ────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        _id(),
        _fk("user_id", "users"),
        _fk("workspace_id", "workspaces"),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("entity_type", sa.String(length=16), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id"])
    op.create_index(
        "idx_notifications_user_unread", "notifications", ["user_id", "is_read"]
    )
    op.create_index("idx_notifications_workspace", "notifications", ["workspace_id"])

    # ─── GitHub ───────────────────────────────────────────────────────────
    op.create_table(
        "github_connections",
        _id(),
        _fk("workspace_id", "workspaces"),
        sa.Column("installation_id", sa.Integer(), nullable=False),
        sa.Column("repositories", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_github_connections_workspace", "github_connections", ["workspace_id"]
    )

    op.create_table(
        "github_links",
        _id(),
        _fk("workspace_id", "workspaces"),
        _fk("task_id", "tasks"),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("repo", sa.String(length=384), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("last_synced_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_github_links_workspace", "github_links", ["workspace_id"])
    op.create_index("idx_github_links_task", "github_links", ["task_id"])
    op.create_index("idx_github_links_repo", "github_links", ["repo", "external_id"])

    op.create_table(
        "external_comments",
        _id(),
        _fk("github_link_id", "github_links"),
        sa.Column("external_comment_id", sa.String(length=64), nullable=False),
        sa.Column("author", sa.JSON(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_external_comments_link", "external_comments", ["github_link_id"]
    )


def downgrade() -> None:
    """Drop all tables, children first."""
    for table in (
        "external_comments",
        "github_links",
        "github_connections",
        "notifications",
        "activities",
        "comments",
        "task_dependencies",
        "subtasks",
        "tasks",
        "phases",
        "projects",
        "status_configs",
        "user_workspace_states",
        "workspace_members",
        "workspaces",
        "user_preferences",
        "user_sessions",
        "users",
    ):
        op.drop_table(table)

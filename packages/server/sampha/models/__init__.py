"""SQLAlchemy ORM models for sampha."""
from sampha.models.base import Base, PrefixedIdMixin
from sampha.models.auth import User, UserSession, UserPreferences
from sampha.models.workspace import (
    Workspace,
    WorkspaceMember,
    UserWorkspaceState,
    StatusConfig,
    DEFAULT_STATUS_CONFIGS,
)
from sampha.models.project import (
    Project,
    Phase,
    Task,
    Subtask,
    TaskDependency,
    Comment,
    Activity,
)
from sampha.models.notification import Notification
from sampha.models.github import GitHubConnection, GitHubLink, ExternalComment

__all__ = [
    "Base",
    "PrefixedIdMixin",
    # Auth
    "User",
    "UserSession",
    "UserPreferences",
    # Workspace
    "Workspace",
    "WorkspaceMember",
    "UserWorkspaceState",
    "StatusConfig",
    "DEFAULT_STATUS_CONFIGS",
    # Projects
    "Project",
    "Phase",
    "Task",
    "Subtask",
    "TaskDependency",
    "Comment",
    "Activity",
    # Notifications
    "Notification",
    # GitHub
    "GitHubConnection",
    "GitHubLink",
    "ExternalComment",
]

"""Cascading deletes for tasks, phases, projects and workspaces.

Foreign keys carry no database-level cascades, so every dependent row is
removed here explicitly. Children go before parents so the deletes are valid
with SQLite ``PRAGMA foreign_keys=ON`` and on PostgreSQL. Nothing in this
module commits: the caller's transaction either removes the whole tree or
none of it.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.logging_config import get_logger
from sampha.models import (
    Activity,
    Comment,
    ExternalComment,
    GitHubConnection,
    GitHubLink,
    Notification,
    Phase,
    Project,
    StatusConfig,
    Subtask,
    Task,
    TaskDependency,
    UserWorkspaceState,
    Workspace,
    WorkspaceMember,
)

logger = get_logger(__name__)


@dataclass
class DeletionReport:
    """Rows removed per table."""

    counts: dict[str, int] = field(default_factory=dict)

    def add(self, table: str, n: int) -> None:
        if n:
            self.counts[table] = self.counts.get(table, 0) + n

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> dict[str, int]:
        return dict(sorted(self.counts.items()))


async def _delete_where(session: AsyncSession, model, *criteria) -> int:
    result = await session.execute(
        delete(model).where(*criteria).execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def _ids(session: AsyncSession, column, *criteria) -> list[str]:
    result = await session.execute(select(column).where(*criteria))
    return list(result.scalars().all())


async def _delete_github_links(
    session: AsyncSession, link_ids: list[str], report: DeletionReport
) -> None:
    if not link_ids:
        return
    report.add(
        "external_comments",
        await _delete_where(
            session, ExternalComment, ExternalComment.github_link_id.in_(link_ids)
        ),
    )
    report.add(
        "github_links",
        await _delete_where(session, GitHubLink, GitHubLink.id.in_(link_ids)),
    )


async def _delete_tasks(
    session: AsyncSession, task_ids: list[str], report: DeletionReport
) -> None:
    """Delete tasks and everything hanging off them."""
    if not task_ids:
        return

    report.add(
        "subtasks", await _delete_where(session, Subtask, Subtask.task_id.in_(task_ids))
    )
    report.add(
        "comments", await _delete_where(session, Comment, Comment.task_id.in_(task_ids))
    )
    # Both directions, including edges from tasks outside this batch.
    report.add(
        "task_dependencies",
        await _delete_where(
            session,
            TaskDependency,
            or_(
                TaskDependency.from_task_id.in_(task_ids),
                TaskDependency.to_task_id.in_(task_ids),
            ),
        ),
    )
    link_ids = await _ids(session, GitHubLink.id, GitHubLink.task_id.in_(task_ids))
    await _delete_github_links(session, link_ids, report)
    report.add(
        "activities",
        await _delete_where(session, Activity, Activity.entity_id.in_(task_ids)),
    )
    report.add(
        "notifications",
        await _delete_where(session, Notification, Notification.entity_id.in_(task_ids)),
    )
    report.add("tasks", await _delete_where(session, Task, Task.id.in_(task_ids)))


async def _forget_projects(
    session: AsyncSession, workspace_id: str, project_ids: Iterable[str]
) -> None:
    """Drop references to deleted projects from users' workspace UI state."""
    gone = set(project_ids)
    result = await session.execute(
        select(UserWorkspaceState).where(UserWorkspaceState.workspace_id == workspace_id)
    )
    for state in result.scalars().all():
        if state.last_viewed_project_id in gone:
            state.last_viewed_project_id = None
        collapsed = state.collapsed_project_ids or []
        if any(pid in gone for pid in collapsed):
            state.collapsed_project_ids = [pid for pid in collapsed if pid not in gone]


async def delete_task(
    session: AsyncSession, task_id: str, report: Optional[DeletionReport] = None
) -> DeletionReport:
    """Delete a task with its subtasks, comments, dependencies, GitHub links
    (and their external comments), activities and notifications."""
    report = report or DeletionReport()
    await _delete_tasks(session, [task_id], report)
    logger.debug(f"Deleted task {task_id}: {report.as_dict()}")
    return report


async def delete_phase(
    session: AsyncSession, phase_id: str, report: Optional[DeletionReport] = None
) -> DeletionReport:
    """Delete a phase, its tasks (full cascade) and its activities."""
    report = report or DeletionReport()
    task_ids = await _ids(session, Task.id, Task.phase_id == phase_id)
    await _delete_tasks(session, task_ids, report)
    report.add(
        "activities", await _delete_where(session, Activity, Activity.entity_id == phase_id)
    )
    report.add("phases", await _delete_where(session, Phase, Phase.id == phase_id))
    logger.debug(f"Deleted phase {phase_id}: {report.as_dict()}")
    return report


async def delete_project(
    session: AsyncSession, project_id: str, report: Optional[DeletionReport] = None
) -> DeletionReport:
    """Delete a project with its phases, tasks and all their dependents."""
    report = report or DeletionReport()
    project = await session.get(Project, project_id)
    if project is None:
        return report

    task_ids = await _ids(session, Task.id, Task.project_id == project_id)
    await _delete_tasks(session, task_ids, report)

    phase_ids = await _ids(session, Phase.id, Phase.project_id == project_id)
    entity_ids = [*phase_ids, project_id]
    report.add(
        "activities",
        await _delete_where(session, Activity, Activity.entity_id.in_(entity_ids)),
    )
    report.add(
        "notifications",
        await _delete_where(session, Notification, Notification.entity_id.in_(entity_ids)),
    )
    report.add(
        "phases", await _delete_where(session, Phase, Phase.project_id == project_id)
    )

    await _forget_projects(session, project.workspace_id, [project_id])
    report.add("projects", await _delete_where(session, Project, Project.id == project_id))
    logger.info(f"Deleted project {project_id}: {report.as_dict()}")
    return report


async def delete_workspace(
    session: AsyncSession, workspace_id: str, report: Optional[DeletionReport] = None
) -> DeletionReport:
    """Delete a workspace and every row scoped to it."""
    report = report or DeletionReport()

    project_ids = await _ids(session, Project.id, Project.workspace_id == workspace_id)
    for project_id in project_ids:
        await delete_project(session, project_id, report)

    # Anything still scoped to the workspace is orphaned from its project.
    task_ids = await _ids(session, Task.id, Task.workspace_id == workspace_id)
    await _delete_tasks(session, task_ids, report)

    report.add(
        "task_dependencies",
        await _delete_where(
            session, TaskDependency, TaskDependency.workspace_id == workspace_id
        ),
    )
    report.add(
        "comments",
        await _delete_where(session, Comment, Comment.workspace_id == workspace_id),
    )
    report.add(
        "activities",
        await _delete_where(session, Activity, Activity.workspace_id == workspace_id),
    )
    report.add(
        "notifications",
        await _delete_where(
            session, Notification, Notification.workspace_id == workspace_id
        ),
    )
    report.add(
        "github_connections",
        await _delete_where(
            session, GitHubConnection, GitHubConnection.workspace_id == workspace_id
        ),
    )
    link_ids = await _ids(
        session, GitHubLink.id, GitHubLink.workspace_id == workspace_id
    )
    await _delete_github_links(session, link_ids, report)
    report.add(
        "status_configs",
        await _delete_where(
            session, StatusConfig, StatusConfig.workspace_id == workspace_id
        ),
    )
    report.add(
        "user_workspace_states",
        await _delete_where(
            session, UserWorkspaceState, UserWorkspaceState.workspace_id == workspace_id
        ),
    )
    report.add(
        "workspace_members",
        await _delete_where(
            session, WorkspaceMember, WorkspaceMember.workspace_id == workspace_id
        ),
    )
    report.add(
        "workspaces",
        await _delete_where(session, Workspace, Workspace.id == workspace_id),
    )
    logger.info(f"Deleted workspace {workspace_id}: {report.as_dict()}")
    return report


async def delete_github_link(
    session: AsyncSession, link_id: str, report: Optional[DeletionReport] = None
) -> DeletionReport:
    """Delete one GitHub link and its mirrored external comments."""
    report = report or DeletionReport()
    await _delete_github_links(session, [link_id], report)
    return report

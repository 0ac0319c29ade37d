"""Shared lookups, access checks and serializers for the routers."""

from typing import Annotated, Optional

from fastapi import HTTPException
from pydantic import StringConstraints
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser
from sampha.auth.membership import assert_workspace_admin, assert_workspace_member
from sampha.models import (
    Comment,
    GitHubLink,
    Phase,
    Project,
    StatusConfig,
    Subtask,
    Task,
    TaskDependency,
    User,
    Workspace,
    WorkspaceMember,
)

# Request strings: surrounding whitespace is stripped before the length check.
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=256)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=512)]
StatusName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]


# ══════════════════════════════════════════════════════════════════════════
# LOOKUPS
# ══════════════════════════════════════════════════════════════════════════


async def get_workspace_or_404(session: AsyncSession, workspace_id: str) -> Workspace:
    workspace = await session.get(Workspace, workspace_id)
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


async def get_project_or_404(session: AsyncSession, project_id: str) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def get_phase_or_404(session: AsyncSession, phase_id: str) -> Phase:
    phase = await session.get(Phase, phase_id)
    if not phase:
        raise HTTPException(status_code=404, detail="Phase not found")
    return phase


async def get_task_or_404(session: AsyncSession, task_id: str) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


async def get_active_user_or_404(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if not user or user.is_deleted:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ══════════════════════════════════════════════════════════════════════════
# ACCESS
# ══════════════════════════════════════════════════════════════════════════


async def member_workspace(
    session: AsyncSession, workspace_id: str, user: AuthUser, admin: bool = False
) -> Workspace:
    """Load a workspace the caller belongs to (404 first, then 403)."""
    workspace = await get_workspace_or_404(session, workspace_id)
    if admin:
        await assert_workspace_admin(session, workspace_id, user.id)
    else:
        await assert_workspace_member(session, workspace_id, user.id)
    return workspace


async def member_project(
    session: AsyncSession, project_id: str, user: AuthUser, admin: bool = False
) -> Project:
    project = await get_project_or_404(session, project_id)
    if admin:
        await assert_workspace_admin(session, project.workspace_id, user.id)
    else:
        await assert_workspace_member(session, project.workspace_id, user.id)
    return project


async def member_phase(
    session: AsyncSession, phase_id: str, user: AuthUser
) -> tuple[Phase, Project]:
    phase = await get_phase_or_404(session, phase_id)
    project = await member_project(session, phase.project_id, user)
    return phase, project


async def member_task(session: AsyncSession, task_id: str, user: AuthUser) -> Task:
    task = await get_task_or_404(session, task_id)
    await assert_workspace_member(session, task.workspace_id, user.id)
    return task


async def workspace_member_ids(session: AsyncSession, workspace_id: str) -> set[str]:
    result = await session.execute(
        select(WorkspaceMember.user_id).where(
            WorkspaceMember.workspace_id == workspace_id
        )
    )
    return set(result.scalars().all())


async def workspace_status_names(session: AsyncSession, workspace_id: str) -> set[str]:
    result = await session.execute(
        select(StatusConfig.name).where(StatusConfig.workspace_id == workspace_id)
    )
    return set(result.scalars().all())


def check_date_range(start: Optional[int], end: Optional[int], what: str = "end") -> None:
    if start is not None and end is not None and end < start:
        raise HTTPException(
            status_code=400, detail=f"{what} must not be before start date"
        )


# ══════════════════════════════════════════════════════════════════════════
# SERIALIZERS
# ══════════════════════════════════════════════════════════════════════════


def serialize_user(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar_url": user.avatar_url,
        "created_at": user.created_at,
    }


def serialize_workspace(workspace: Workspace, role: Optional[str] = None) -> dict:
    data = {
        "id": workspace.id,
        "name": workspace.name,
        "slug": workspace.slug,
        "type": workspace.type,
        "created_at": workspace.created_at,
        "created_by": workspace.created_by,
    }
    if role is not None:
        data["role"] = role
    return data


def serialize_member(member: WorkspaceMember, user: Optional[User] = None) -> dict:
    return {
        "id": member.id,
        "workspace_id": member.workspace_id,
        "user_id": member.user_id,
        "role": member.role,
        "joined_at": member.joined_at,
        "user": serialize_user(user),
    }


def serialize_status(status: StatusConfig) -> dict:
    return {
        "id": status.id,
        "workspace_id": status.workspace_id,
        "name": status.name,
        "order": status.order,
        "color": status.color,
        "is_terminal": status.is_terminal,
    }


def serialize_project(project: Project) -> dict:
    return {
        "id": project.id,
        "workspace_id": project.workspace_id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "start_date": project.start_date,
        "end_date": project.end_date,
        "created_at": project.created_at,
        "created_by": project.created_by,
    }


def serialize_phase(phase: Phase) -> dict:
    return {
        "id": phase.id,
        "project_id": phase.project_id,
        "name": phase.name,
        "start_date": phase.start_date,
        "end_date": phase.end_date,
        "order": phase.order,
    }


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "workspace_id": task.workspace_id,
        "project_id": task.project_id,
        "phase_id": task.phase_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "start_date": task.start_date,
        "due_date": task.due_date,
        "assignee_ids": list(task.assignee_ids or []),
        "watcher_ids": list(task.watcher_ids or []),
        "priority": task.priority,
        "created_by": task.created_by,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


def serialize_subtask(subtask: Subtask) -> dict:
    return {
        "id": subtask.id,
        "task_id": subtask.task_id,
        "title": subtask.title,
        "is_completed": subtask.is_completed,
        "order": subtask.order,
    }


def serialize_dependency(dep: TaskDependency) -> dict:
    return {
        "id": dep.id,
        "workspace_id": dep.workspace_id,
        "from_task_id": dep.from_task_id,
        "to_task_id": dep.to_task_id,
        "type": dep.type,
    }


def serialize_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "workspace_id": comment.workspace_id,
        "task_id": comment.task_id,
        "author_id": comment.author_id,
        "body": comment.body,
        "created_at": comment.created_at,
        "edited_at": comment.edited_at,
    }


def serialize_github_link(link: GitHubLink) -> dict:
    return {
        "id": link.id,
        "workspace_id": link.workspace_id,
        "task_id": link.task_id,
        "type": link.type,
        "repo": link.repo,
        "external_id": link.external_id,
        "url": link.url,
        "status": link.status,
        "last_synced_at": link.last_synced_at,
    }

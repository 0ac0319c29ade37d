"""Project endpoints.

Projects live inside a workspace; any member may create and edit them,
only workspace admins may delete them (which removes every phase, task and
dependent row with them).
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import Project
from sampha.services.activity import list_activities, record_activity, serialize_activity
from sampha.services.deletion import delete_project
from sampha.services.events import publish_event
from sampha.utils import gen_id, now_ms

from ._common import (
    Name,
    check_date_range,
    member_project,
    member_workspace,
    serialize_project,
)

logger = get_logger(__name__)
router = APIRouter()


class CreateProjectRequest(BaseModel):
    name: Name
    description: Optional[str] = None
    startDate: Optional[int] = None
    endDate: Optional[int] = None


class UpdateProjectRequest(BaseModel):
    name: Optional[Name] = None
    description: Optional[str] = None
    status: Optional[Literal["active", "archived"]] = None
    startDate: Optional[int] = None
    endDate: Optional[int] = None


_FIELD_MAP = {
    "name": "name",
    "description": "description",
    "status": "status",
    "startDate": "start_date",
    "endDate": "end_date",
}


@router.get("/workspaces/{workspace_id}/projects")
async def list_projects(
    workspace_id: str,
    status: Optional[str] = None,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """List a workspace's projects, optionally filtered by status."""
    await member_workspace(session, workspace_id, user)
    query = select(Project).where(Project.workspace_id == workspace_id)
    if status:
        query = query.where(Project.status == status)
    result = await session.execute(query.order_by(Project.created_at))
    return [serialize_project(p) for p in result.scalars().all()]


@router.post("/workspaces/{workspace_id}/projects")
async def create_project(
    workspace_id: str,
    req: CreateProjectRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)
    check_date_range(req.startDate, req.endDate, "End date")

    project = Project(
        id=gen_id("proj_"),
        workspace_id=workspace_id,
        name=req.name,
        description=req.description,
        status="active",
        start_date=req.startDate,
        end_date=req.endDate,
        created_at=now_ms(),
        created_by=user.id,
    )
    session.add(project)
    await session.flush()
    await record_activity(
        session, workspace_id, "project", project.id, "created", user.id,
        {"name": project.name},
    )
    await session.commit()

    logger.debug(f"Project created: {project.id} in {workspace_id}")
    await publish_event(
        workspace_id, "PROJECT_CREATED", {"projectId": project.id, "name": project.name}
    )
    return serialize_project(project)


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    return serialize_project(await member_project(session, project_id, user))


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: str,
    req: UpdateProjectRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Patch the fields present in the request body."""
    project = await member_project(session, project_id, user)
    updates = req.model_dump(exclude_unset=True)
    if updates.get("name") is None:
        updates.pop("name", None)
    if updates.get("status") is None:
        updates.pop("status", None)

    start = updates.get("startDate", project.start_date)
    end = updates.get("endDate", project.end_date)
    check_date_range(start, end, "End date")

    for key, value in updates.items():
        setattr(project, _FIELD_MAP[key], value)
    if updates:
        await record_activity(
            session, project.workspace_id, "project", project.id, "updated", user.id,
            {"fields": sorted(_FIELD_MAP[k] for k in updates)},
        )
    await session.commit()

    await publish_event(
        project.workspace_id, "PROJECT_UPDATED", {"projectId": project.id}
    )
    return serialize_project(project)


@router.post("/projects/{project_id}/archive")
async def archive_project(
    project_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    project = await member_project(session, project_id, user)
    project.status = "archived"
    await record_activity(
        session, project.workspace_id, "project", project.id, "archived", user.id
    )
    await session.commit()

    await publish_event(
        project.workspace_id, "PROJECT_ARCHIVED", {"projectId": project.id}
    )
    return serialize_project(project)


@router.delete("/projects/{project_id}")
async def remove_project(
    project_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a project with its phases and tasks (workspace admins only)."""
    project = await member_project(session, project_id, user, admin=True)
    workspace_id = project.workspace_id
    report = await delete_project(session, project_id)
    await session.commit()

    await publish_event(workspace_id, "PROJECT_DELETED", {"projectId": project_id})
    return {"status": "deleted", "project_id": project_id, "deleted": report.as_dict()}


@router.get("/projects/{project_id}/activities")
async def project_activities(
    project_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_project(session, project_id, user)
    return [serialize_activity(a) for a in await list_activities(session, project_id, limit)]

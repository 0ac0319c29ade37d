"""Workspace API: tenants, membership, per-user UI state and task statuses."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.auth.membership import get_workspace_membership
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import (
    DEFAULT_STATUS_CONFIGS,
    Project,
    StatusConfig,
    Task,
    User,
    UserWorkspaceState,
    Workspace,
    WorkspaceMember,
)
from sampha.services.deletion import delete_workspace
from sampha.services.events import publish_event
from sampha.utils import gen_id, now_ms

from ._common import (
    Name,
    StatusName,
    get_active_user_or_404,
    member_workspace,
    serialize_member,
    serialize_status,
    serialize_workspace,
)

logger = get_logger(__name__)
router = APIRouter()

SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


# ══════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ══════════════════════════════════════════════════════════════════════════


class CreateWorkspaceRequest(BaseModel):
    name: Name
    slug: str = Field(min_length=1, max_length=128, pattern=SLUG_PATTERN)
    type: Literal["private", "shared"] = "shared"


class UpdateWorkspaceRequest(BaseModel):
    name: Optional[Name] = None
    slug: Optional[str] = Field(
        default=None, min_length=1, max_length=128, pattern=SLUG_PATTERN
    )


class AddMemberRequest(BaseModel):
    userId: str
    role: Literal["admin", "member"] = "member"


class UpdateMemberRoleRequest(BaseModel):
    role: Literal["admin", "member"]


class WorkspaceStateRequest(BaseModel):
    lastViewedProjectId: Optional[str] = None
    lastView: Optional[Literal["timeline", "calendar", "kanban"]] = None
    timelineZoomLevel: Optional[int] = Field(default=None, ge=0)
    collapsedProjectIds: Optional[list[str]] = None


class CreateStatusRequest(BaseModel):
    name: StatusName
    order: Optional[int] = None
    color: str = "sky"
    isTerminal: bool = False


class UpdateStatusRequest(BaseModel):
    name: Optional[StatusName] = None
    order: Optional[int] = None
    color: Optional[str] = None
    isTerminal: Optional[bool] = None


# ══════════════════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════════════════


async def _slug_taken(
    session: AsyncSession, slug: str, exclude_id: Optional[str] = None
) -> bool:
    query = select(Workspace.id).where(Workspace.slug == slug)
    if exclude_id:
        query = query.where(Workspace.id != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def _admin_count(session: AsyncSession, workspace_id: str) -> int:
    result = await session.execute(
        select(func.count(WorkspaceMember.id)).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.role == "admin",
        )
    )
    return result.scalar() or 0


async def _member_or_404(
    session: AsyncSession, workspace_id: str, user_id: str
) -> WorkspaceMember:
    membership = await get_workspace_membership(session, workspace_id, user_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Member not found")
    return membership


async def _get_state(
    session: AsyncSession, workspace_id: str, user_id: str
) -> Optional[UserWorkspaceState]:
    result = await session.execute(
        select(UserWorkspaceState).where(
            UserWorkspaceState.workspace_id == workspace_id,
            UserWorkspaceState.user_id == user_id,
        )
    )
    return result.scalars().first()


def _serialize_state(
    state: Optional[UserWorkspaceState], workspace_id: str, user_id: str
) -> dict:
    if state is None:
        return {
            "workspace_id": workspace_id,
            "user_id": user_id,
            "last_viewed_project_id": None,
            "last_view": "timeline",
            "timeline_zoom_level": 1,
            "collapsed_project_ids": [],
        }
    return {
        "workspace_id": state.workspace_id,
        "user_id": state.user_id,
        "last_viewed_project_id": state.last_viewed_project_id,
        "last_view": state.last_view,
        "timeline_zoom_level": state.timeline_zoom_level,
        "collapsed_project_ids": list(state.collapsed_project_ids or []),
    }


async def _get_status_or_404(
    session: AsyncSession, workspace_id: str, status_id: str
) -> StatusConfig:
    status = await session.get(StatusConfig, status_id)
    if not status or status.workspace_id != workspace_id:
        raise HTTPException(status_code=404, detail="Status not found")
    return status


# ══════════════════════════════════════════════════════════════════════════
# WORKSPACES
# ══════════════════════════════════════════════════════════════════════════


@router.get("/")
async def list_workspaces(
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Workspaces the caller belongs to, each with the caller's role."""
    result = await session.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user.id)
        .order_by(Workspace.created_at)
    )
    return [serialize_workspace(ws, role) for ws, role in result.all()]


@router.post("/")
async def create_workspace(
    req: CreateWorkspaceRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a workspace. The creator becomes its admin and the default
    statuses are seeded."""
    if await _slug_taken(session, req.slug):
        raise HTTPException(status_code=409, detail="Workspace slug already exists")

    now = now_ms()
    workspace = Workspace(
        id=gen_id("ws_"),
        name=req.name,
        slug=req.slug,
        type=req.type,
        created_at=now,
        created_by=user.id,
    )
    session.add(workspace)
    await session.flush()
    session.add(
        WorkspaceMember(
            id=gen_id("mem_"),
            workspace_id=workspace.id,
            user_id=user.id,
            role="admin",
            joined_at=now,
        )
    )
    for status in DEFAULT_STATUS_CONFIGS:
        session.add(
            StatusConfig(id=gen_id("st_"), workspace_id=workspace.id, **status)
        )
    await session.commit()

    logger.info(f"Workspace created: {workspace.id} slug={workspace.slug} by {user.id}")
    await publish_event(workspace.id, "WORKSPACE_CREATED", {"name": workspace.name})
    return serialize_workspace(workspace, "admin")


@router.get("/by-slug/{slug}")
async def get_workspace_by_slug(
    slug: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    result = await session.execute(select(Workspace).where(Workspace.slug == slug))
    workspace = result.scalar_one_or_none()
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    await member_workspace(session, workspace.id, user)
    membership = await get_workspace_membership(session, workspace.id, user.id)
    return serialize_workspace(workspace, membership.role)


@router.get("/{workspace_id}")
async def get_workspace(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    workspace = await member_workspace(session, workspace_id, user)
    membership = await get_workspace_membership(session, workspace_id, user.id)
    return serialize_workspace(workspace, membership.role)


@router.patch("/{workspace_id}")
async def update_workspace(
    workspace_id: str,
    req: UpdateWorkspaceRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Rename a workspace or change its slug (admin only)."""
    workspace = await member_workspace(session, workspace_id, user, admin=True)
    updates = req.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        return serialize_workspace(workspace, "admin")

    if "slug" in updates and await _slug_taken(session, updates["slug"], workspace_id):
        raise HTTPException(status_code=409, detail="Workspace slug already exists")
    if "name" in updates:
        workspace.name = updates["name"]
    if "slug" in updates:
        workspace.slug = updates["slug"]
    await session.commit()

    await publish_event(workspace_id, "WORKSPACE_UPDATED", updates)
    return serialize_workspace(workspace, "admin")


@router.delete("/{workspace_id}")
async def remove_workspace(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a workspace and everything in it (admin only)."""
    await member_workspace(session, workspace_id, user, admin=True)
    report = await delete_workspace(session, workspace_id)
    await session.commit()

    await publish_event(workspace_id, "WORKSPACE_DELETED", {})
    return {"status": "deleted", "workspace_id": workspace_id, "deleted": report.as_dict()}


# ══════════════════════════════════════════════════════════════════════════
# MEMBERS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/{workspace_id}/members")
async def list_members(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)
    result = await session.execute(
        select(WorkspaceMember, User)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.joined_at)
    )
    return [serialize_member(m, u) for m, u in result.all()]


@router.post("/{workspace_id}/members")
async def add_member(
    workspace_id: str,
    req: AddMemberRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user, admin=True)
    new_user = await get_active_user_or_404(session, req.userId)
    if await get_workspace_membership(session, workspace_id, req.userId):
        raise HTTPException(status_code=409, detail="User is already a member")

    member = WorkspaceMember(
        id=gen_id("mem_"),
        workspace_id=workspace_id,
        user_id=req.userId,
        role=req.role,
        joined_at=now_ms(),
    )
    session.add(member)
    await session.commit()

    logger.info(f"Added {req.userId} to {workspace_id} as {req.role}")
    await publish_event(
        workspace_id, "MEMBER_ADDED", {"userId": req.userId, "role": req.role}
    )
    return serialize_member(member, new_user)


@router.patch("/{workspace_id}/members/{user_id}")
async def update_member_role(
    workspace_id: str,
    user_id: str,
    req: UpdateMemberRoleRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user, admin=True)
    member = await _member_or_404(session, workspace_id, user_id)
    if (
        member.role == "admin"
        and req.role != "admin"
        and await _admin_count(session, workspace_id) <= 1
    ):
        raise HTTPException(status_code=400, detail="Cannot demote the last admin")

    member.role = req.role
    await session.commit()

    await publish_event(
        workspace_id, "MEMBER_ROLE_CHANGED", {"userId": user_id, "role": req.role}
    )
    return serialize_member(member, await session.get(User, user_id))


@router.delete("/{workspace_id}/members/{user_id}")
async def remove_member(
    workspace_id: str,
    user_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user, admin=True)
    member = await _member_or_404(session, workspace_id, user_id)
    if member.role == "admin" and await _admin_count(session, workspace_id) <= 1:
        raise HTTPException(status_code=400, detail="Cannot remove the last admin")

    await session.delete(member)
    await session.commit()

    logger.info(f"Removed {user_id} from {workspace_id}")
    await publish_event(workspace_id, "MEMBER_REMOVED", {"userId": user_id})
    return {"status": "removed", "user_id": user_id}


# ══════════════════════════════════════════════════════════════════════════
# PER-USER STATE
# ══════════════════════════════════════════════════════════════════════════


@router.get("/{workspace_id}/state")
async def get_workspace_state(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)
    state = await _get_state(session, workspace_id, user.id)
    return _serialize_state(state, workspace_id, user.id)


@router.put("/{workspace_id}/state")
async def put_workspace_state(
    workspace_id: str,
    req: WorkspaceStateRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Upsert the caller's UI state; fields left out keep their value."""
    await member_workspace(session, workspace_id, user)
    updates = req.model_dump(exclude_unset=True)
    project_id = updates.get("lastViewedProjectId")
    if project_id is not None:
        project = await session.get(Project, project_id)
        if project is None or project.workspace_id != workspace_id:
            raise HTTPException(
                status_code=400, detail="Project does not belong to this workspace"
            )

    state = await _get_state(session, workspace_id, user.id)
    if state is None:
        state = UserWorkspaceState(
            id=gen_id("uws_"),
            user_id=user.id,
            workspace_id=workspace_id,
            last_view="timeline",
            timeline_zoom_level=1,
            collapsed_project_ids=[],
        )
        session.add(state)

    if "lastViewedProjectId" in updates:
        state.last_viewed_project_id = updates["lastViewedProjectId"]
    if updates.get("lastView") is not None:
        state.last_view = updates["lastView"]
    if updates.get("timelineZoomLevel") is not None:
        state.timeline_zoom_level = updates["timelineZoomLevel"]
    if updates.get("collapsedProjectIds") is not None:
        state.collapsed_project_ids = list(dict.fromkeys(updates["collapsedProjectIds"]))
    await session.commit()
    return _serialize_state(state, workspace_id, user.id)


# ══════════════════════════════════════════════════════════════════════════
# STATUS CONFIGS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/{workspace_id}/statuses")
async def list_statuses(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)
    result = await session.execute(
        select(StatusConfig)
        .where(StatusConfig.workspace_id == workspace_id)
        .order_by(StatusConfig.order, StatusConfig.name)
    )
    return [serialize_status(s) for s in result.scalars().all()]


@router.post("/{workspace_id}/statuses")
async def create_status(
    workspace_id: str,
    req: CreateStatusRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user, admin=True)
    existing = await session.execute(
        select(StatusConfig).where(StatusConfig.workspace_id == workspace_id)
    )
    statuses = existing.scalars().all()
    if any(s.name == req.name for s in statuses):
        raise HTTPException(status_code=409, detail="Status already exists")

    order = req.order
    if order is None:
        order = max((s.order for s in statuses), default=-1) + 1
    status = StatusConfig(
        id=gen_id("st_"),
        workspace_id=workspace_id,
        name=req.name,
        order=order,
        color=req.color,
        is_terminal=req.isTerminal,
    )
    session.add(status)
    await session.commit()

    await publish_event(workspace_id, "STATUS_CREATED", {"statusId": status.id})
    return serialize_status(status)


@router.patch("/{workspace_id}/statuses/{status_id}")
async def update_status(
    workspace_id: str,
    status_id: str,
    req: UpdateStatusRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Update a status. Renaming also renames it on every task that uses it."""
    await member_workspace(session, workspace_id, user, admin=True)
    status = await _get_status_or_404(session, workspace_id, status_id)
    updates = req.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in updates and updates["name"] != status.name:
        clash = await session.execute(
            select(StatusConfig.id).where(
                StatusConfig.workspace_id == workspace_id,
                StatusConfig.name == updates["name"],
            )
        )
        if clash.first() is not None:
            raise HTTPException(status_code=409, detail="Status already exists")
        await session.execute(
            update(Task)
            .where(Task.workspace_id == workspace_id, Task.status == status.name)
            .values(status=updates["name"], updated_at=now_ms())
            .execution_options(synchronize_session="fetch")
        )
        status.name = updates["name"]
    if "order" in updates:
        status.order = updates["order"]
    if "color" in updates:
        status.color = updates["color"]
    if "isTerminal" in updates:
        status.is_terminal = updates["isTerminal"]
    await session.commit()

    await publish_event(workspace_id, "STATUS_UPDATED", {"statusId": status.id})
    return serialize_status(status)


@router.delete("/{workspace_id}/statuses/{status_id}")
async def delete_status(
    workspace_id: str,
    status_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a status that no task uses."""
    await member_workspace(session, workspace_id, user, admin=True)
    status = await _get_status_or_404(session, workspace_id, status_id)
    in_use = await session.execute(
        select(func.count(Task.id)).where(
            Task.workspace_id == workspace_id, Task.status == status.name
        )
    )
    count = in_use.scalar() or 0
    if count:
        raise HTTPException(
            status_code=400,
            detail=f"Status '{status.name}' is used by {count} task(s)",
        )

    await session.delete(status)
    await session.commit()

    await publish_event(workspace_id, "STATUS_DELETED", {"statusId": status_id})
    return {"status": "deleted", "status_id": status_id}

"""GitHub integration: workspace installations and task links."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.auth.membership import assert_workspace_admin, assert_workspace_member
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import ExternalComment, GitHubConnection, GitHubLink
from sampha.services.activity import record_activity
from sampha.services.deletion import delete_github_link
from sampha.services.events import publish_event
from sampha.utils import gen_id, now_ms

from ._common import member_task, member_workspace, serialize_github_link

logger = get_logger(__name__)
router = APIRouter()

REPO_PATTERN = r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$"


class UpsertConnectionRequest(BaseModel):
    installationId: int
    repositories: list[str] = Field(default_factory=list)


class CreateLinkRequest(BaseModel):
    type: Literal["issue", "pull_request"]
    repo: str = Field(pattern=REPO_PATTERN)
    externalId: str = Field(min_length=1)
    url: str = Field(min_length=1)
    status: str = "open"


def _serialize_connection(connection: GitHubConnection) -> dict:
    return {
        "id": connection.id,
        "workspace_id": connection.workspace_id,
        "installation_id": connection.installation_id,
        "repositories": list(connection.repositories or []),
    }


def _serialize_external_comment(comment: ExternalComment) -> dict:
    return {
        "id": comment.id,
        "github_link_id": comment.github_link_id,
        "external_comment_id": comment.external_comment_id,
        "author": comment.author or {},
        "body": comment.body,
        "created_at": comment.created_at,
    }


async def _get_link_or_404(session: AsyncSession, link_id: str) -> GitHubLink:
    link = await session.get(GitHubLink, link_id)
    if not link:
        raise HTTPException(status_code=404, detail="GitHub link not found")
    return link


# ══════════════════════════════════════════════════════════════════════════
# CONNECTIONS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/workspaces/{workspace_id}/github/connections")
async def list_connections(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)
    result = await session.execute(
        select(GitHubConnection).where(GitHubConnection.workspace_id == workspace_id)
    )
    return [_serialize_connection(c) for c in result.scalars().all()]


@router.put("/workspaces/{workspace_id}/github/connections")
async def upsert_connection(
    workspace_id: str,
    req: UpsertConnectionRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Create or update the connection for an installation (admin only)."""
    await member_workspace(session, workspace_id, user, admin=True)
    result = await session.execute(
        select(GitHubConnection).where(
            GitHubConnection.workspace_id == workspace_id,
            GitHubConnection.installation_id == req.installationId,
        )
    )
    connection = result.scalar_one_or_none()
    if connection is None:
        connection = GitHubConnection(
            id=gen_id("ghc_"),
            workspace_id=workspace_id,
            installation_id=req.installationId,
        )
        session.add(connection)
    connection.repositories = list(dict.fromkeys(req.repositories))
    await session.commit()

    logger.info(
        f"GitHub installation {req.installationId} connected to {workspace_id} "
        f"({len(connection.repositories)} repos)"
    )
    await publish_event(
        workspace_id, "GITHUB_CONNECTION_UPDATED", {"connectionId": connection.id}
    )
    return _serialize_connection(connection)


@router.delete("/github/connections/{connection_id}")
async def delete_connection(
    connection_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    connection = await session.get(GitHubConnection, connection_id)
    if not connection:
        raise HTTPException(status_code=404, detail="GitHub connection not found")
    workspace_id = connection.workspace_id
    await assert_workspace_admin(session, workspace_id, user.id)
    await session.delete(connection)
    await session.commit()

    await publish_event(
        workspace_id, "GITHUB_CONNECTION_DELETED", {"connectionId": connection_id}
    )
    return {"status": "deleted", "connection_id": connection_id}


# ══════════════════════════════════════════════════════════════════════════
# LINKS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/tasks/{task_id}/github/links")
async def list_links(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_task(session, task_id, user)
    result = await session.execute(
        select(GitHubLink).where(GitHubLink.task_id == task_id)
    )
    return [serialize_github_link(link) for link in result.scalars().all()]


@router.post("/tasks/{task_id}/github/links")
async def create_link(
    task_id: str,
    req: CreateLinkRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Link an issue or pull request to a task."""
    task = await member_task(session, task_id, user)
    existing = await session.execute(
        select(GitHubLink.id).where(
            GitHubLink.task_id == task_id,
            GitHubLink.repo == req.repo,
            GitHubLink.external_id == req.externalId,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail="Already linked to this task")

    link = GitHubLink(
        id=gen_id("ghl_"),
        workspace_id=task.workspace_id,
        task_id=task_id,
        type=req.type,
        repo=req.repo,
        external_id=req.externalId,
        url=req.url,
        status=req.status,
        last_synced_at=now_ms(),
    )
    session.add(link)
    await record_activity(
        session, task.workspace_id, "task", task_id, "github_linked", user.id,
        {"repo": req.repo, "externalId": req.externalId, "type": req.type},
    )
    await session.commit()

    await publish_event(
        task.workspace_id, "GITHUB_LINK_CREATED", {"taskId": task_id, "linkId": link.id}
    )
    return serialize_github_link(link)


@router.delete("/github/links/{link_id}")
async def remove_link(
    link_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    link = await _get_link_or_404(session, link_id)
    workspace_id, task_id = link.workspace_id, link.task_id
    await assert_workspace_member(session, workspace_id, user.id)
    report = await delete_github_link(session, link_id)
    await session.commit()

    await publish_event(
        workspace_id, "GITHUB_LINK_DELETED", {"taskId": task_id, "linkId": link_id}
    )
    return {"status": "deleted", "link_id": link_id, "deleted": report.as_dict()}


@router.get("/github/links/{link_id}/comments")
async def list_external_comments(
    link_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Comments mirrored from GitHub, oldest first."""
    link = await _get_link_or_404(session, link_id)
    await assert_workspace_member(session, link.workspace_id, user.id)
    result = await session.execute(
        select(ExternalComment)
        .where(ExternalComment.github_link_id == link_id)
        .order_by(ExternalComment.created_at)
    )
    return [_serialize_external_comment(c) for c in result.scalars().all()]

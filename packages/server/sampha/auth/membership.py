"""Workspace membership checks shared by every workspace-scoped router."""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.models.workspace import WorkspaceMember


async def get_workspace_membership(
    session: AsyncSession, workspace_id: str, user_id: str
) -> Optional[WorkspaceMember]:
    """Get the membership row for a user in a workspace, or None."""
    result = await session.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def assert_workspace_member(
    session: AsyncSession, workspace_id: str, user_id: str
) -> WorkspaceMember:
    """Raise 403 unless the user is a member of the workspace."""
    membership = await get_workspace_membership(session, workspace_id, user_id)
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a workspace member to perform this action",
        )
    return membership


async def assert_workspace_admin(
    session: AsyncSession, workspace_id: str, user_id: str
) -> WorkspaceMember:
    """Raise 403 unless the user is an admin of the workspace."""
    membership = await assert_workspace_member(session, workspace_id, user_id)
    if membership.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a workspace admin to perform this action",
        )
    return membership

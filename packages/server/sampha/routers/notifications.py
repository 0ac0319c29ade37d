"""Notification inbox for the current user."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user, get_current_user_or_none
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import Notification
from sampha.services.events import publish_event
from sampha.services.notifications import scan_due_dates, serialize_notification

from ._common import member_workspace

logger = get_logger(__name__)
router = APIRouter()


class MarkAllReadRequest(BaseModel):
    workspaceId: Optional[str] = None


@router.get("/unread-count")
async def unread_count(
    user: Optional[AuthUser] = Depends(get_current_user_or_none),
    session: AsyncSession = Depends(get_async_session),
):
    """Unread notifications for the caller; 0 when signed out."""
    if user is None:
        return {"count": 0}
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return {"count": result.scalar() or 0}


@router.get("/")
async def list_notifications(
    unread_only: bool = False,
    workspace_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """The caller's notifications, newest first."""
    query = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    if workspace_id:
        query = query.where(Notification.workspace_id == workspace_id)
    result = await session.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    )
    return [serialize_notification(n) for n in result.scalars().all()]


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    notification = await session.get(Notification, notification_id)
    # Someone else's notification is indistinguishable from a missing one.
    if not notification or notification.user_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.is_read = True
    await session.commit()
    return serialize_notification(notification)


@router.post("/read-all")
async def mark_all_read(
    req: MarkAllReadRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    query = update(Notification).where(
        Notification.user_id == user.id,
        Notification.is_read == False,  # noqa: E712
    )
    if req.workspaceId:
        query = query.where(Notification.workspace_id == req.workspaceId)
    result = await session.execute(
        query.values(is_read=True).execution_options(synchronize_session="fetch")
    )
    await session.commit()
    return {"status": "ok", "updated": result.rowcount or 0}


@router.post("/workspaces/{workspace_id}/scan-due")
async def scan_due(
    workspace_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Create due_soon / overdue notifications for the workspace's open tasks."""
    await member_workspace(session, workspace_id, user)
    created = await scan_due_dates(session, workspace_id)
    await session.commit()

    if created:
        await publish_event(
            workspace_id, "NOTIFICATIONS_CREATED", {"count": len(created)}
        )
    return {"created": len(created)}

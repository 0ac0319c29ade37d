"""Task comments with @mention notifications."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.auth.membership import assert_workspace_member
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import Comment, User, WorkspaceMember
from sampha.services.activity import record_activity
from sampha.services.events import publish_event
from sampha.services.notifications import extract_mentions, notify
from sampha.utils import gen_id, now_ms

from ._common import member_task, serialize_comment

logger = get_logger(__name__)
router = APIRouter()


class CommentRequest(BaseModel):
    body: str = Field(min_length=1)


async def _get_comment_or_404(session: AsyncSession, comment_id: str) -> Comment:
    comment = await session.get(Comment, comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


async def _workspace_users(session: AsyncSession, workspace_id: str) -> list[User]:
    result = await session.execute(
        select(User)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == workspace_id, User.is_deleted == False)  # noqa: E712
    )
    return list(result.scalars().all())


@router.get("/tasks/{task_id}/comments")
async def list_comments(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Comments on a task, oldest first."""
    await member_task(session, task_id, user)
    result = await session.execute(
        select(Comment)
        .where(Comment.task_id == task_id)
        .order_by(Comment.created_at, Comment.id)
    )
    return [serialize_comment(c) for c in result.scalars().all()]


@router.post("/tasks/{task_id}/comments")
async def create_comment(
    task_id: str,
    req: CommentRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Post a comment; ``@Name`` mentions of members are notified."""
    task = await member_task(session, task_id, user)
    comment = Comment(
        id=gen_id("cmt_"),
        workspace_id=task.workspace_id,
        task_id=task_id,
        author_id=user.id,
        body=req.body,
        created_at=now_ms(),
    )
    session.add(comment)
    await session.flush()

    mentioned = extract_mentions(req.body, await _workspace_users(session, task.workspace_id))
    await notify(session, task.workspace_id, mentioned, "mention", "task", task_id, user.id)
    await record_activity(
        session, task.workspace_id, "task", task_id, "commented", user.id,
        {"commentId": comment.id},
    )
    await session.commit()

    await publish_event(
        task.workspace_id, "COMMENT_CREATED", {"taskId": task_id, "commentId": comment.id}
    )
    return serialize_comment(comment)


@router.patch("/comments/{comment_id}")
async def edit_comment(
    comment_id: str,
    req: CommentRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    comment = await _get_comment_or_404(session, comment_id)
    await assert_workspace_member(session, comment.workspace_id, user.id)
    if comment.author_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can edit a comment")

    comment.body = req.body
    comment.edited_at = now_ms()
    await session.commit()

    await publish_event(
        comment.workspace_id,
        "COMMENT_UPDATED",
        {"taskId": comment.task_id, "commentId": comment.id},
    )
    return serialize_comment(comment)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a comment (its author or a workspace admin)."""
    comment = await _get_comment_or_404(session, comment_id)
    membership = await assert_workspace_member(session, comment.workspace_id, user.id)
    if comment.author_id != user.id and membership.role != "admin":
        raise HTTPException(
            status_code=403, detail="Only the author or an admin can delete a comment"
        )

    workspace_id, task_id = comment.workspace_id, comment.task_id
    await session.delete(comment)
    await session.commit()

    await publish_event(
        workspace_id, "COMMENT_DELETED", {"taskId": task_id, "commentId": comment_id}
    )
    return {"status": "deleted", "comment_id": comment_id}

"""Notification fan-out: assignments, status changes, mentions, due dates."""

import re
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.config import settings
from sampha.logging_config import get_logger
from sampha.models import Notification, StatusConfig, Task, User
from sampha.utils import now_ms

logger = get_logger(__name__)

HOUR_MS = 60 * 60 * 1000


async def notify(
    session: AsyncSession,
    workspace_id: str,
    user_ids: Iterable[str],
    type: str,
    entity_type: str,
    entity_id: str,
    actor_id: Optional[str] = None,
) -> list[Notification]:
    """Create one notification per recipient. The actor is never notified."""
    created = []
    now = now_ms()
    seen = set()
    for user_id in user_ids:
        if not user_id or user_id == actor_id or user_id in seen:
            continue
        seen.add(user_id)
        notification = Notification(
            id=Notification.generate_id(),
            user_id=user_id,
            workspace_id=workspace_id,
            type=type,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
            created_at=now,
        )
        session.add(notification)
        created.append(notification)
    if created:
        logger.debug(
            f"Queued {len(created)} {type} notifications for {entity_type} {entity_id}"
        )
    return created


def extract_mentions(body: str, users: Iterable[User]) -> list[str]:
    """IDs of users mentioned as ``@Name`` in ``body`` (case-insensitive).

    Longer names are matched first so "@Ann Lee" does not also count as "@Ann".
    """
    text = body.lower()
    mentioned = []
    for user in sorted(users, key=lambda u: len(u.name or ""), reverse=True):
        if not user.name:
            continue
        pattern = re.compile(r"@" + re.escape(user.name.lower()) + r"(?![\w])")
        if pattern.search(text):
            mentioned.append(user.id)
            text = pattern.sub(" ", text)
    return mentioned


async def terminal_statuses(session: AsyncSession, workspace_id: str) -> set[str]:
    result = await session.execute(
        select(StatusConfig.name).where(
            StatusConfig.workspace_id == workspace_id,
            StatusConfig.is_terminal == True,  # noqa: E712
        )
    )
    return set(result.scalars().all())


async def scan_due_dates(
    session: AsyncSession, workspace_id: str, now: Optional[int] = None
) -> list[Notification]:
    """Create due_soon / overdue notifications for assignees of open tasks.

    Each (user, task, type) triple is notified at most once.
    """
    now = now if now is not None else now_ms()
    window_end = now + settings.due_soon_hours * HOUR_MS
    done = await terminal_statuses(session, workspace_id)

    task_result = await session.execute(
        select(Task).where(
            Task.workspace_id == workspace_id, Task.due_date <= window_end
        )
    )
    tasks = [t for t in task_result.scalars().all() if t.status not in done]
    if not tasks:
        return []

    existing_result = await session.execute(
        select(Notification.user_id, Notification.entity_id, Notification.type).where(
            Notification.workspace_id == workspace_id,
            Notification.type.in_(("due_soon", "overdue")),
            Notification.entity_id.in_([t.id for t in tasks]),
        )
    )
    existing = set(existing_result.all())

    created = []
    for task in tasks:
        kind = "overdue" if task.due_date < now else "due_soon"
        recipients = [
            uid for uid in task.assignee_ids or [] if (uid, task.id, kind) not in existing
        ]
        created.extend(
            await notify(session, workspace_id, recipients, kind, "task", task.id)
        )
    logger.info(f"Due date scan for {workspace_id}: {len(created)} notifications")
    return created


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "workspace_id": notification.workspace_id,
        "type": notification.type,
        "entity_type": notification.entity_type,
        "entity_id": notification.entity_id,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }

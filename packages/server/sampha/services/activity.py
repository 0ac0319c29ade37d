"""Activity trail helpers."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.models import Activity
from sampha.utils import now_ms


async def record_activity(
    session: AsyncSession,
    workspace_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: str,
    metadata: Optional[dict] = None,
) -> Activity:
    """Append an activity entry (flushed with the caller's transaction)."""
    activity = Activity(
        id=Activity.generate_id(),
        workspace_id=workspace_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        activity_metadata=metadata or {},
        created_at=now_ms(),
    )
    session.add(activity)
    return activity


async def list_activities(
    session: AsyncSession, entity_id: str, limit: int = 100
) -> list[Activity]:
    """Activities for one entity, newest first."""
    result = await session.execute(
        select(Activity)
        .where(Activity.entity_id == entity_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def serialize_activity(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "workspace_id": activity.workspace_id,
        "entity_type": activity.entity_type,
        "entity_id": activity.entity_id,
        "action": activity.action,
        "actor_id": activity.actor_id,
        "metadata": activity.activity_metadata or {},
        "created_at": activity.created_at,
    }

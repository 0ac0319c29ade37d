"""Change events for real-time clients.

Every mutation appends a JSON event to the workspace's Redis stream; the SSE
endpoint in routers/events.py tails that stream.
"""

import json
from typing import Optional

from sampha import dependencies
from sampha.logging_config import get_logger
from sampha.utils import now_ms

logger = get_logger(__name__)

# Keep roughly this many events per workspace stream.
STREAM_MAXLEN = 1000


def workspace_stream_key(workspace_id: str) -> str:
    return f"sampha:events:workspace:{workspace_id}"


async def publish_event(
    workspace_id: Optional[str], event_type: str, data: Optional[dict] = None
) -> None:
    """Publish event to the workspace stream. Best effort: never raises."""
    if not workspace_id or not dependencies.redis_client:
        return
    event = {
        "type": event_type,
        "workspaceId": workspace_id,
        **(data or {}),
        "timestamp": now_ms(),
    }
    try:
        logger.debug(f"Publishing event: type={event_type} workspace={workspace_id}")
        await dependencies.redis_client.xadd(
            workspace_stream_key(workspace_id),
            {"data": json.dumps(event)},
            maxlen=STREAM_MAXLEN,
            approximate=True,
        )
    except Exception as e:
        logger.warning(f"Failed to publish {event_type} for {workspace_id}: {e}")

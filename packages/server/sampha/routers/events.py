"""SSE streaming endpoint for real-time workspace events."""

import asyncio
import json

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from sampha import dependencies
from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.services.events import workspace_stream_key

from ._common import member_workspace

logger = get_logger(__name__)
router = APIRouter()


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


@router.get("/workspaces/{workspace_id}/stream")
async def stream_workspace_events(
    workspace_id: str,
    last_event_id: str = "$",
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """SSE endpoint that streams change events for one workspace.

    Connect via EventSource (the access token may be passed as ``?token=``):
        const es = new EventSource('/v1/events/workspaces/ws_123/stream?token=...');
        es.onmessage = (e) => console.log(JSON.parse(e.data));

    ``last_event_id`` resumes after a given stream id; the default only
    delivers events published after connecting.
    """
    await member_workspace(session, workspace_id, user)
    client = dependencies.get_redis()

    stream_key = workspace_stream_key(workspace_id)

    async def event_generator():
        last_id = last_event_id

        while True:
            try:
                # Block for 5s at most so heartbeats keep the connection alive
                response = await client.xread(
                    {stream_key: last_id}, block=5000
                )

                if response:
                    for _stream_name, messages in response:
                        for msg_id, fields in messages:
                            last_id = _decode(msg_id)
                            data = _decode(fields.get(b"data") or fields.get("data", "{}"))

                            try:
                                event_data = json.loads(data)
                            except json.JSONDecodeError:
                                event_data = {"raw": data}

                            yield {
                                "id": last_id,
                                "event": "message",
                                "data": json.dumps(event_data),
                            }
                else:
                    yield {
                        "event": "heartbeat",
                        "data": json.dumps(
                            {"workspace_id": workspace_id, "status": "connected"}
                        ),
                    }

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Event stream error for {workspace_id}: {e}")
                yield {
                    "event": "heartbeat",
                    "data": json.dumps(
                        {"workspace_id": workspace_id, "status": "error", "error": str(e)}
                    ),
                }
                await asyncio.sleep(5)

    return EventSourceResponse(event_generator())

"""Calendar feed: tasks rendered as events for the month, week, day and
agenda views, with the view's date range, title and navigation targets."""

from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import Task, UserPreferences
from sampha.services.calendar import (
    CalendarView,
    agenda,
    events_for_day,
    is_same_month,
    month_weeks,
    navigate,
    task_to_event,
    view_range,
    view_title,
)
from sampha.services.notifications import terminal_statuses
from sampha.utils import datetime_to_ms

from ._common import member_workspace

logger = get_logger(__name__)
router = APIRouter()


async def _resolve_timezone(
    session: AsyncSession, user_id: str, tz: Optional[str]
) -> ZoneInfo:
    if tz is None:
        result = await session.execute(
            select(UserPreferences.timezone).where(UserPreferences.user_id == user_id)
        )
        tz = result.scalar_one_or_none() or "UTC"
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {tz}")


def _parse_current(value: Optional[str], tz: ZoneInfo) -> datetime:
    """``date`` query parameter (YYYY-MM-DD or ISO datetime) in ``tz``."""
    if not value:
        return datetime.now(tz)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")
    if parsed.tzinfo is None:
        if len(value) <= 10:
            return datetime.combine(parsed.date(), time.min, tzinfo=tz)
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


@router.get("/workspaces/{workspace_id}/calendar")
async def get_calendar(
    workspace_id: str,
    view: CalendarView = CalendarView.MONTH,
    date: Optional[str] = None,
    tz: Optional[str] = None,
    project_id: Optional[str] = None,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Events in the visible range of ``view`` around ``date``.

    ``tz`` defaults to the caller's preferred timezone. Agenda responses add
    ``days`` (only days with events); month responses add ``weeks``.
    """
    await member_workspace(session, workspace_id, user)
    zone = await _resolve_timezone(session, user.id, tz)
    current = _parse_current(date, zone)
    range_start, range_end = view_range(view, current)

    query = select(Task).where(
        Task.workspace_id == workspace_id,
        Task.start_date <= datetime_to_ms(range_end),
        Task.due_date >= datetime_to_ms(range_start),
    )
    if project_id:
        query = query.where(Task.project_id == project_id)
    result = await session.execute(query.order_by(Task.start_date))
    done = await terminal_statuses(session, workspace_id)
    events = [task_to_event(t, zone, done) for t in result.scalars().all()]

    response = {
        "view": view.value,
        "title": view_title(view, current),
        "timezone": str(zone),
        "date": current.date().isoformat(),
        "range_start": range_start.isoformat(),
        "range_end": range_end.isoformat(),
        "previous": navigate(view, current, -1).date().isoformat(),
        "next": navigate(view, current, 1).date().isoformat(),
        "events": [e.to_dict() for e in events],
    }
    if view == CalendarView.AGENDA:
        days, has_events = agenda(events, current)
        response["days"] = [d.to_dict() for d in days]
        response["has_events"] = has_events
    elif view == CalendarView.MONTH:
        response["weeks"] = [
            [
                {
                    "day": day.date().isoformat(),
                    "in_month": is_same_month(day, current),
                    "event_ids": [e.id for e in events_for_day(events, day)],
                }
                for day in week
            ]
            for week in month_weeks(current)
        ]
    logger.debug(
        f"Calendar {view.value} for {workspace_id} at {current.date()}: {len(events)} events"
    )
    return response

"""Calendar date logic behind the month / week / day / agenda views.

All functions take timezone-aware datetimes and do wall-clock arithmetic in
the datetime's own zone, so "next day" stays at local midnight across DST
changes. Weeks start on ``settings.week_starts_on`` (0 = Sunday).
"""

import calendar as _calendar
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Optional

from sampha.config import settings
from sampha.utils import datetime_to_ms, ms_to_datetime

AGENDA_DAYS_TO_SHOW = settings.agenda_days_to_show


class CalendarView(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    AGENDA = "agenda"


class EventColor(str, Enum):
    SKY = "sky"
    AMBER = "amber"
    VIOLET = "violet"
    ROSE = "rose"
    EMERALD = "emerald"
    ORANGE = "orange"


PRIORITY_COLORS = {
    "urgent": EventColor.ROSE,
    "high": EventColor.ORANGE,
    "medium": EventColor.AMBER,
    "low": EventColor.SKY,
}


@dataclass
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    status: str
    description: Optional[str] = None
    all_day: bool = False
    priority: Optional[str] = None
    color: Optional[EventColor] = None
    location: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "priority": self.priority,
            "status": self.status,
            "color": self.color.value if self.color else None,
            "location": self.location,
        }


@dataclass
class AgendaDay:
    day: datetime
    events: list[CalendarEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "day": self.day.date().isoformat(),
            "label": f"{self.day.day} {self.day.strftime('%b, %A')}",
            "events": [e.to_dict() for e in self.events],
        }


# ─── Day / week / month primitives ───────────────────────────────────────────


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min, tzinfo=dt.tzinfo)


def end_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.max, tzinfo=dt.tzinfo)


def is_same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.astimezone(a.tzinfo).date()


def _day_of_week(dt: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def start_of_week(dt: datetime, week_starts_on: Optional[int] = None) -> datetime:
    if week_starts_on is None:
        week_starts_on = settings.week_starts_on
    diff = (_day_of_week(dt) - week_starts_on) % 7
    return start_of_day(dt) - timedelta(days=diff)


def end_of_week(dt: datetime, week_starts_on: Optional[int] = None) -> datetime:
    return end_of_day(start_of_week(dt, week_starts_on) + timedelta(days=6))


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def add_months(dt: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, _calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def add_hours(dt: datetime, hours: float) -> datetime:
    return dt + timedelta(hours=hours)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt.replace(day=1))


def end_of_month(dt: datetime) -> datetime:
    last = _calendar.monthrange(dt.year, dt.month)[1]
    return end_of_day(dt.replace(day=last))


def is_same_month(a: datetime, b: datetime) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def snap_to_15_minutes(dt: datetime) -> datetime:
    """Round to the nearest quarter hour (7 minutes past rounds down, 8 up)."""
    remainder = dt.minute % 15
    snapped = dt.replace(second=0, microsecond=0)
    if remainder == 0:
        return snapped
    if remainder < 7.5:
        return snapped - timedelta(minutes=remainder)
    return snapped + timedelta(minutes=15 - remainder)


# ─── Views ───────────────────────────────────────────────────────────────────


def view_range(view: CalendarView, current: datetime) -> tuple[datetime, datetime]:
    """First and last instant shown by ``view`` around ``current``."""
    view = CalendarView(view)
    if view == CalendarView.MONTH:
        return (
            start_of_week(start_of_month(current)),
            end_of_week(end_of_month(current)),
        )
    if view == CalendarView.WEEK:
        return start_of_week(current), end_of_week(current)
    if view == CalendarView.DAY:
        return start_of_day(current), end_of_day(current)
    return (
        start_of_day(current),
        end_of_day(add_days(current, AGENDA_DAYS_TO_SHOW - 1)),
    )


def navigate(view: CalendarView, current: datetime, direction: int) -> datetime:
    """The date shown after pressing previous (-1) or next (+1)."""
    view = CalendarView(view)
    if direction not in (-1, 1):
        raise ValueError("direction must be -1 or 1")
    if view == CalendarView.MONTH:
        return add_months(current, direction)
    if view == CalendarView.WEEK:
        return add_days(current, 7 * direction)
    if view == CalendarView.DAY:
        return add_days(current, direction)
    return add_days(current, AGENDA_DAYS_TO_SHOW * direction)


def _range_title(start: datetime, end: datetime) -> str:
    if is_same_month(start, end):
        return start.strftime("%B %Y")
    return f"{start.strftime('%b')} - {end.strftime('%b %Y')}"


def view_title(view: CalendarView, current: datetime) -> str:
    view = CalendarView(view)
    if view == CalendarView.MONTH:
        return current.strftime("%B %Y")
    if view == CalendarView.WEEK:
        return _range_title(start_of_week(current), end_of_week(current))
    if view == CalendarView.DAY:
        return f"{current.strftime('%a %B')} {current.day}, {current.year}"
    return _range_title(current, add_days(current, AGENDA_DAYS_TO_SHOW - 1))


def month_weeks(current: datetime) -> list[list[datetime]]:
    """The month grid: rows of seven day-starts covering the whole month."""
    start, end = view_range(CalendarView.MONTH, current)
    days = []
    day = start
    while day <= end:
        days.append(day)
        day = add_days(day, 1)
    return [days[i:i + 7] for i in range(0, len(days), 7)]


def agenda_days(current: datetime) -> list[datetime]:
    start = start_of_day(current)
    return [add_days(start, i) for i in range(AGENDA_DAYS_TO_SHOW)]


def events_for_day(events: Iterable[CalendarEvent], day: datetime) -> list[CalendarEvent]:
    """Events that start or end on ``day`` or span across it, by start time."""
    day_start = start_of_day(day)
    matching = []
    for event in events:
        start = event.start.astimezone(day.tzinfo)
        end = event.end.astimezone(day.tzinfo)
        if (
            is_same_day(day_start, start)
            or is_same_day(day_start, end)
            or start < day_start < end
        ):
            matching.append(event)
    return sorted(matching, key=lambda e: e.start)


def agenda(
    events: Iterable[CalendarEvent], current: datetime
) -> tuple[list[AgendaDay], bool]:
    """Agenda buckets for the next AGENDA_DAYS_TO_SHOW days.

    Returns (days_with_events, has_events); empty days are left out.
    """
    events = list(events)
    buckets = []
    for day in agenda_days(current):
        day_events = events_for_day(events, day)
        if day_events:
            buckets.append(AgendaDay(day=day, events=day_events))
    return buckets, bool(buckets)


# ─── Tasks ───────────────────────────────────────────────────────────────────


def _is_midnight(dt: datetime) -> bool:
    return (dt.hour, dt.minute, dt.second, dt.microsecond) == (0, 0, 0, 0)


def event_color(priority: Optional[str], is_done: bool = False) -> EventColor:
    if is_done:
        return EventColor.EMERALD
    return PRIORITY_COLORS.get((priority or "").lower(), EventColor.VIOLET)


def task_to_event(
    task, tz: tzinfo = timezone.utc, terminal_statuses: Iterable[str] = ()
) -> CalendarEvent:
    """Render a task as a calendar event in ``tz``."""
    start = ms_to_datetime(task.start_date, tz)
    end = ms_to_datetime(task.due_date, tz)
    return CalendarEvent(
        id=task.id,
        title=task.title,
        description=task.description,
        start=start,
        end=end,
        all_day=_is_midnight(start) and _is_midnight(end),
        priority=task.priority,
        status=task.status,
        color=event_color(task.priority, task.status in set(terminal_statuses)),
    )


def reschedule(
    start_ms: int,
    due_ms: int,
    new_start: datetime,
    new_end: Optional[datetime] = None,
) -> tuple[int, int]:
    """New (start, due) in ms after a drag (keep duration) or resize (new end)."""
    if new_end is None:
        duration = due_ms - start_ms
        new_start_ms = datetime_to_ms(new_start)
        return new_start_ms, new_start_ms + duration
    new_start_ms, new_end_ms = datetime_to_ms(new_start), datetime_to_ms(new_end)
    if new_end_ms < new_start_ms:
        raise ValueError("end must not be before start")
    return new_start_ms, new_end_ms

"""Tests for calendar date logic and the calendar feed."""
from datetime import datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient

from sampha.services.calendar import (
    CalendarEvent,
    CalendarView,
    EventColor,
    add_hours,
    agenda,
    events_for_day,
    month_weeks,
    navigate,
    reschedule,
    snap_to_15_minutes,
    start_of_week,
    task_to_event,
    view_range,
    view_title,
)
from sampha.utils import datetime_to_ms

from conftest import DAY_MS, HOUR_MS

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")


def at(*args, tz=UTC):
    return datetime(*args, tzinfo=tz)


def event(event_id, start, end, **kwargs):
    return CalendarEvent(id=event_id, title=event_id, start=start, end=end, status="todo", **kwargs)


# ─── Ranges and navigation ────────────────────────────────────────────────────


def test_month_range_covers_whole_weeks():
    start, end = view_range(CalendarView.MONTH, at(2025, 3, 15, 12))
    # March 1st 2025 is a Saturday, March 31st a Monday
    assert start == at(2025, 2, 23)
    assert end.date().isoformat() == "2025-04-05"
    assert (end.hour, end.minute) == (23, 59)


def test_week_day_and_agenda_ranges():
    current = at(2025, 3, 12, 15, 30)  # Wednesday
    assert view_range(CalendarView.WEEK, current)[0] == at(2025, 3, 9)
    assert view_range(CalendarView.WEEK, current)[1].date().isoformat() == "2025-03-15"
    assert view_range(CalendarView.DAY, current)[0] == at(2025, 3, 12)
    start, end = view_range(CalendarView.AGENDA, current)
    assert start == at(2025, 3, 12)
    assert end.date().isoformat() == "2025-04-10"


def test_week_can_start_on_monday():
    assert start_of_week(at(2025, 3, 9), week_starts_on=1) == at(2025, 3, 3)
    assert start_of_week(at(2025, 3, 10), week_starts_on=1) == at(2025, 3, 10)


def test_week_range_stays_on_local_midnight_across_dst():
    # US clocks spring forward on 2025-03-09
    start, end = view_range(CalendarView.WEEK, at(2025, 3, 12, tz=NEW_YORK))
    assert start == at(2025, 3, 9, tz=NEW_YORK)
    assert (start.hour, start.minute) == (0, 0)
    assert end.date().isoformat() == "2025-03-15"


def test_add_hours_accepts_fractions():
    assert add_hours(at(2025, 3, 12, 9), 1.5) == at(2025, 3, 12, 10, 30)
    assert add_hours(at(2025, 3, 12, 23), 2) == at(2025, 3, 13, 1)


def test_navigate_by_view():
    current = at(2025, 3, 12, 9)
    assert navigate(CalendarView.WEEK, current, 1) == at(2025, 3, 19, 9)
    assert navigate(CalendarView.DAY, current, -1) == at(2025, 3, 11, 9)
    assert navigate(CalendarView.AGENDA, current, 1) == at(2025, 4, 11, 9)
    assert navigate(CalendarView.MONTH, current, -1) == at(2025, 2, 12, 9)


def test_navigate_month_clamps_day():
    assert navigate(CalendarView.MONTH, at(2025, 1, 31), 1) == at(2025, 2, 28)
    assert navigate(CalendarView.MONTH, at(2024, 1, 31), 1) == at(2024, 2, 29)
    assert navigate(CalendarView.MONTH, at(2025, 1, 15), -1) == at(2024, 12, 15)


def test_navigate_rejects_other_directions():
    with pytest.raises(ValueError):
        navigate(CalendarView.DAY, at(2025, 1, 1), 2)


def test_view_titles():
    assert view_title(CalendarView.MONTH, at(2025, 3, 12)) == "March 2025"
    assert view_title(CalendarView.WEEK, at(2025, 3, 12)) == "March 2025"
    assert view_title(CalendarView.WEEK, at(2025, 3, 31)) == "Mar - Apr 2025"
    assert view_title(CalendarView.DAY, at(2025, 3, 15)) == "Sat March 15, 2025"
    assert view_title(CalendarView.AGENDA, at(2025, 3, 12)) == "Mar - Apr 2025"


def test_month_weeks_grid():
    weeks = month_weeks(at(2025, 3, 15))
    assert len(weeks) == 6
    assert all(len(week) == 7 for week in weeks)
    assert weeks[0][0] == at(2025, 2, 23)
    assert weeks[-1][-1] == at(2025, 4, 5)


@pytest.mark.parametrize(
    "minute,expected",
    [(0, (10, 0)), (7, (10, 0)), (8, (10, 15)), (22, (10, 15)), (23, (10, 30)), (53, (11, 0))],
)
def test_snap_to_15_minutes(minute, expected):
    snapped = snap_to_15_minutes(at(2025, 3, 12, 10, minute, 42))
    assert (snapped.hour, snapped.minute, snapped.second) == (*expected, 0)


# ─── Events ───────────────────────────────────────────────────────────────────


def test_events_for_day_includes_spanning_events_sorted():
    day = at(2025, 3, 12)
    events = [
        event("later", at(2025, 3, 12, 15), at(2025, 3, 12, 16)),
        event("span", at(2025, 3, 10, 9), at(2025, 3, 14, 9)),
        event("ends", at(2025, 3, 11, 20), at(2025, 3, 12, 8)),
        event("other", at(2025, 3, 13, 9), at(2025, 3, 13, 10)),
    ]
    assert [e.id for e in events_for_day(events, day)] == ["span", "ends", "later"]


def test_events_for_day_uses_the_days_timezone():
    # 03:00 UTC on the 13th is still the 12th in New York
    late = event("late", at(2025, 3, 13, 3), at(2025, 3, 13, 4))
    assert events_for_day([late], at(2025, 3, 12, tz=NEW_YORK)) == [late]
    assert events_for_day([late], at(2025, 3, 12)) == []


def test_agenda_groups_and_skips_empty_days():
    current = at(2025, 3, 12, 10)
    events = [
        event("a", at(2025, 3, 12, 9), at(2025, 3, 12, 10)),
        event("b", at(2025, 3, 20, 9), at(2025, 3, 21, 10)),
        event("far", at(2025, 6, 1, 9), at(2025, 6, 1, 10)),
    ]
    days, has_events = agenda(events, current)
    assert has_events is True
    assert [d.day.date().isoformat() for d in days] == ["2025-03-12", "2025-03-20", "2025-03-21"]
    assert days[0].to_dict()["label"] == "12 Mar, Wednesday"

    assert agenda([], current) == ([], False)


def test_task_to_event():
    start = datetime_to_ms(at(2025, 3, 12, 9))
    task = SimpleNamespace(
        id="task_1", title="Ship", description=None, start_date=start,
        due_date=start + 2 * HOUR_MS, priority="urgent", status="todo",
    )
    ev = task_to_event(task, NEW_YORK, terminal_statuses={"done"})
    assert ev.start == at(2025, 3, 12, 5, tz=NEW_YORK)
    assert ev.all_day is False
    assert ev.color == EventColor.ROSE

    task.status = "done"
    assert task_to_event(task, terminal_statuses={"done"}).color == EventColor.EMERALD

    task.status, task.priority = "todo", None
    assert task_to_event(task).color == EventColor.VIOLET


def test_task_to_event_all_day_depends_on_timezone():
    midnight = datetime_to_ms(at(2025, 3, 12))
    task = SimpleNamespace(
        id="task_1", title="Ship", description=None, start_date=midnight,
        due_date=midnight + DAY_MS, priority="low", status="todo",
    )
    assert task_to_event(task, UTC).all_day is True
    assert task_to_event(task, NEW_YORK).all_day is False


def test_reschedule():
    start = datetime_to_ms(at(2025, 3, 12, 9))
    due = start + 3 * HOUR_MS
    new_start = at(2025, 3, 14, 11)

    assert reschedule(start, due, new_start) == (
        datetime_to_ms(new_start),
        datetime_to_ms(new_start) + 3 * HOUR_MS,
    )
    new_end = at(2025, 3, 14, 12)
    assert reschedule(start, due, new_start, new_end) == (
        datetime_to_ms(new_start),
        datetime_to_ms(new_end),
    )
    with pytest.raises(ValueError):
        reschedule(start, due, new_end, new_start)


# ─── Feed ─────────────────────────────────────────────────────────────────────

# make_task places tasks at 2025-10-09T08:53:20Z for one day


@pytest.mark.asyncio
async def test_calendar_month_feed(client: AsyncClient, alice, workspace, make_task):
    task = await make_task(priority="high")

    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/calendar",
        params={"view": "month", "date": "2025-10-09", "tz": "UTC"},
        headers=alice["headers"],
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["title"] == "October 2025"
    assert data["timezone"] == "UTC"
    assert data["previous"] == "2025-09-09"
    assert data["next"] == "2025-11-09"
    assert [e["id"] for e in data["events"]] == [task["id"]]
    assert data["events"][0]["color"] == "orange"

    days = {d["day"]: d for week in data["weeks"] for d in week}
    assert days["2025-10-09"]["event_ids"] == [task["id"]]
    assert days["2025-10-10"]["event_ids"] == [task["id"]]
    assert days["2025-10-11"]["event_ids"] == []
    assert days["2025-09-28"]["in_month"] is False


@pytest.mark.asyncio
async def test_calendar_excludes_tasks_outside_range(
    client: AsyncClient, alice, workspace, make_task
):
    await make_task()
    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/calendar",
        params={"view": "week", "date": "2025-12-01"},
        headers=alice["headers"],
    )
    assert response.status_code == 200
    assert response.json()["events"] == []


@pytest.mark.asyncio
async def test_calendar_agenda_feed(client: AsyncClient, alice, workspace, make_task):
    task = await make_task()
    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/calendar",
        params={"view": "agenda", "date": "2025-10-01"},
        headers=alice["headers"],
    )
    data = response.json()
    assert data["has_events"] is True
    assert [d["day"] for d in data["days"]] == ["2025-10-09", "2025-10-10"]
    assert data["days"][0]["events"][0]["id"] == task["id"]


@pytest.mark.asyncio
async def test_calendar_uses_preferred_timezone(
    client: AsyncClient, alice, workspace, make_task
):
    await make_task()
    response = await client.put(
        "/v1/users/me/preferences",
        json={"timezone": "Asia/Tokyo"},
        headers=alice["headers"],
    )
    assert response.status_code == 200

    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/calendar",
        params={"view": "day", "date": "2025-10-09"},
        headers=alice["headers"],
    )
    data = response.json()
    assert data["timezone"] == "Asia/Tokyo"
    assert data["range_start"] == "2025-10-09T00:00:00+09:00"
    assert data["events"][0]["start"] == "2025-10-09T17:53:20+09:00"


@pytest.mark.asyncio
async def test_calendar_rejects_bad_input(client: AsyncClient, alice, workspace):
    url = f"/v1/workspaces/{workspace['id']}/calendar"
    response = await client.get(url, params={"tz": "Mars/Base"}, headers=alice["headers"])
    assert response.status_code == 400

    response = await client.get(url, params={"date": "soon"}, headers=alice["headers"])
    assert response.status_code == 400

    response = await client.get(url, params={"view": "year"}, headers=alice["headers"])
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_calendar_requires_membership(client: AsyncClient, carol, workspace):
    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/calendar", headers=carol["headers"]
    )
    assert response.status_code == 403

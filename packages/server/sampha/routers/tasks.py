"""Task endpoints: tasks, subtasks, dependencies, rescheduling and activity.

Tasks are created inside a workspace under a project phase. Assignees and
watchers must be workspace members; status must be one of the workspace's
configured statuses. Deleting a task removes every row that references it.
"""

from datetime import datetime, timezone
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import GitHubLink, Subtask, Task, TaskDependency
from sampha.services.activity import list_activities, record_activity, serialize_activity
from sampha.services.calendar import reschedule
from sampha.services.deletion import delete_task
from sampha.services.events import publish_event
from sampha.services.notifications import notify
from sampha.utils import gen_id, now_ms

from ._common import (
    Title,
    check_date_range,
    get_phase_or_404,
    get_project_or_404,
    get_task_or_404,
    member_task,
    member_workspace,
    serialize_dependency,
    serialize_github_link,
    serialize_subtask,
    serialize_task,
    workspace_member_ids,
    workspace_status_names,
)

logger = get_logger(__name__)
router = APIRouter()

Priority = Literal["low", "medium", "high", "urgent"]


# ══════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ══════════════════════════════════════════════════════════════════════════


class CreateTaskRequest(BaseModel):
    projectId: str
    phaseId: str
    title: Title
    status: str
    startDate: int
    dueDate: int
    description: Optional[str] = None
    priority: Optional[Priority] = None
    assigneeIds: list[str] = Field(default_factory=list)
    watcherIds: list[str] = Field(default_factory=list)


class UpdateTaskRequest(BaseModel):
    phaseId: Optional[str] = None
    title: Optional[Title] = None
    status: Optional[str] = None
    startDate: Optional[int] = None
    dueDate: Optional[int] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    assigneeIds: Optional[list[str]] = None
    watcherIds: Optional[list[str]] = None


class RescheduleRequest(BaseModel):
    """New start (and optionally end) as epoch ms or ISO-8601 strings."""

    start: Union[int, str]
    end: Optional[Union[int, str]] = None


class CreateSubtaskRequest(BaseModel):
    title: Title


class UpdateSubtaskRequest(BaseModel):
    title: Optional[Title] = None
    isCompleted: Optional[bool] = None


class ReorderSubtasksRequest(BaseModel):
    subtaskIds: list[str]


class AddDependencyRequest(BaseModel):
    toTaskId: str
    type: Literal["blocks", "relatesTo"] = "blocks"


# ══════════════════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════════════════


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


async def _check_people(
    session: AsyncSession, workspace_id: str, assignees: list[str], watchers: list[str]
) -> None:
    members = await workspace_member_ids(session, workspace_id)
    outsiders = [uid for uid in [*assignees, *watchers] if uid not in members]
    if outsiders:
        raise HTTPException(
            status_code=400,
            detail=f"Not workspace members: {', '.join(sorted(set(outsiders)))}",
        )


async def _check_status(session: AsyncSession, workspace_id: str, status: str) -> None:
    if status not in await workspace_status_names(session, workspace_id):
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")


def _parse_when(value: Union[int, str]) -> datetime:
    if isinstance(value, int):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid datetime: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def _task_in_workspace(session: AsyncSession, task_id: str, workspace_id: str) -> Task:
    task = await get_task_or_404(session, task_id)
    if task.workspace_id != workspace_id:
        raise HTTPException(
            status_code=400, detail="Tasks must belong to the same workspace"
        )
    return task


async def _subtask_with_task(
    session: AsyncSession, subtask_id: str, user: AuthUser
) -> tuple[Subtask, Task]:
    subtask = await session.get(Subtask, subtask_id)
    if not subtask:
        raise HTTPException(status_code=404, detail="Subtask not found")
    task = await member_task(session, subtask.task_id, user)
    return subtask, task


async def _subtasks(session: AsyncSession, task_id: str) -> list[Subtask]:
    result = await session.execute(
        select(Subtask).where(Subtask.task_id == task_id).order_by(Subtask.order)
    )
    return list(result.scalars().all())


async def _dependencies(session: AsyncSession, task_id: str) -> list[TaskDependency]:
    result = await session.execute(
        select(TaskDependency).where(
            or_(
                TaskDependency.from_task_id == task_id,
                TaskDependency.to_task_id == task_id,
            )
        )
    )
    return list(result.scalars().all())


# ══════════════════════════════════════════════════════════════════════════
# TASKS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/workspaces/{workspace_id}/tasks")
async def list_tasks(
    workspace_id: str,
    project_id: Optional[str] = None,
    phase_id: Optional[str] = None,
    status: Optional[str] = None,
    assignee_id: Optional[str] = None,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """List tasks in a workspace with optional filters."""
    await member_workspace(session, workspace_id, user)
    query = select(Task).where(Task.workspace_id == workspace_id)
    if project_id:
        query = query.where(Task.project_id == project_id)
    if phase_id:
        query = query.where(Task.phase_id == phase_id)
    if status:
        query = query.where(Task.status == status)
    result = await session.execute(query.order_by(Task.start_date, Task.created_at))
    tasks = result.scalars().all()
    # assignee_ids is a JSON list, filtered here to stay portable across dialects
    if assignee_id:
        tasks = [t for t in tasks if assignee_id in (t.assignee_ids or [])]
    return [serialize_task(t) for t in tasks]


@router.post("/workspaces/{workspace_id}/tasks")
async def create_task(
    workspace_id: str,
    req: CreateTaskRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_workspace(session, workspace_id, user)

    project = await get_project_or_404(session, req.projectId)
    if project.workspace_id != workspace_id:
        raise HTTPException(
            status_code=400, detail="Project does not belong to this workspace"
        )
    phase = await get_phase_or_404(session, req.phaseId)
    if phase.project_id != project.id:
        raise HTTPException(status_code=400, detail="Phase does not belong to this project")
    check_date_range(req.startDate, req.dueDate, "Due date")
    await _check_status(session, workspace_id, req.status)
    assignees, watchers = _dedupe(req.assigneeIds), _dedupe(req.watcherIds)
    await _check_people(session, workspace_id, assignees, watchers)

    now = now_ms()
    task = Task(
        id=gen_id("task_"),
        workspace_id=workspace_id,
        project_id=project.id,
        phase_id=phase.id,
        title=req.title,
        description=req.description,
        status=req.status,
        start_date=req.startDate,
        due_date=req.dueDate,
        assignee_ids=assignees,
        watcher_ids=watchers,
        priority=req.priority,
        created_by=user.id,
        created_at=now,
        updated_at=now,
    )
    session.add(task)
    await session.flush()
    await record_activity(
        session, workspace_id, "task", task.id, "created", user.id, {"title": task.title}
    )
    await notify(session, workspace_id, assignees, "assignment", "task", task.id, user.id)
    await session.commit()

    logger.debug(f"Task created: {task.id} in project {project.id}")
    await publish_event(
        workspace_id,
        "TASK_CREATED",
        {"taskId": task.id, "projectId": project.id, "title": task.title},
    )
    return serialize_task(task)


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """A task with its subtasks, dependencies and GitHub links."""
    task = await member_task(session, task_id, user)
    links = await session.execute(select(GitHubLink).where(GitHubLink.task_id == task_id))
    return {
        **serialize_task(task),
        "subtasks": [serialize_subtask(s) for s in await _subtasks(session, task_id)],
        "dependencies": [
            serialize_dependency(d) for d in await _dependencies(session, task_id)
        ],
        "github_links": [serialize_github_link(link) for link in links.scalars().all()],
    }


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str,
    req: UpdateTaskRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Patch a task.

    Newly added assignees get an ``assignment`` notification; a status change
    notifies watchers and assignees with ``status_change``.
    """
    task = await member_task(session, task_id, user)
    updates = {
        k: v
        for k, v in req.model_dump(exclude_unset=True).items()
        if v is not None or k in ("description", "priority")
    }

    if "phaseId" in updates:
        phase = await get_phase_or_404(session, updates["phaseId"])
        if phase.project_id != task.project_id:
            raise HTTPException(
                status_code=400, detail="Phase does not belong to this project"
            )
    check_date_range(
        updates.get("startDate", task.start_date),
        updates.get("dueDate", task.due_date),
        "Due date",
    )
    if "status" in updates:
        await _check_status(session, task.workspace_id, updates["status"])
    if "assigneeIds" in updates:
        updates["assigneeIds"] = _dedupe(updates["assigneeIds"])
    if "watcherIds" in updates:
        updates["watcherIds"] = _dedupe(updates["watcherIds"])
    await _check_people(
        session,
        task.workspace_id,
        updates.get("assigneeIds", []),
        updates.get("watcherIds", []),
    )

    old_status = task.status
    old_assignees = set(task.assignee_ids or [])
    columns = {
        "phaseId": "phase_id",
        "title": "title",
        "status": "status",
        "startDate": "start_date",
        "dueDate": "due_date",
        "description": "description",
        "priority": "priority",
        "assigneeIds": "assignee_ids",
        "watcherIds": "watcher_ids",
    }
    for key, value in updates.items():
        setattr(task, columns[key], value)
    task.updated_at = now_ms()

    if updates:
        await record_activity(
            session, task.workspace_id, "task", task.id, "updated", user.id,
            {"fields": sorted(columns[k] for k in updates)},
        )
    new_assignees = [uid for uid in task.assignee_ids or [] if uid not in old_assignees]
    await notify(
        session, task.workspace_id, new_assignees, "assignment", "task", task.id, user.id
    )
    if task.status != old_status:
        await record_activity(
            session, task.workspace_id, "task", task.id, "status_changed", user.id,
            {"from": old_status, "to": task.status},
        )
        await notify(
            session,
            task.workspace_id,
            [*(task.watcher_ids or []), *(task.assignee_ids or [])],
            "status_change",
            "task",
            task.id,
            user.id,
        )
    await session.commit()

    await publish_event(
        task.workspace_id,
        "TASK_UPDATED",
        {"taskId": task.id, "fields": sorted(updates)},
    )
    return serialize_task(task)


@router.delete("/tasks/{task_id}")
async def remove_task(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    task = await member_task(session, task_id, user)
    workspace_id, project_id = task.workspace_id, task.project_id
    report = await delete_task(session, task_id)
    await session.commit()

    await publish_event(
        workspace_id, "TASK_DELETED", {"taskId": task_id, "projectId": project_id}
    )
    return {"status": "deleted", "task_id": task_id, "deleted": report.as_dict()}


@router.post("/tasks/{task_id}/reschedule")
async def reschedule_task(
    task_id: str,
    req: RescheduleRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Move a task on the calendar.

    Without ``end`` the task keeps its duration (drag); with ``end`` it is
    resized.
    """
    task = await member_task(session, task_id, user)
    new_start = _parse_when(req.start)
    new_end = _parse_when(req.end) if req.end is not None else None
    try:
        start_ms, due_ms = reschedule(task.start_date, task.due_date, new_start, new_end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    previous = {"start_date": task.start_date, "due_date": task.due_date}
    task.start_date, task.due_date = start_ms, due_ms
    task.updated_at = now_ms()
    await record_activity(
        session, task.workspace_id, "task", task.id, "rescheduled", user.id,
        {"from": previous, "to": {"start_date": start_ms, "due_date": due_ms}},
    )
    await session.commit()

    await publish_event(
        task.workspace_id,
        "TASK_RESCHEDULED",
        {"taskId": task.id, "startDate": start_ms, "dueDate": due_ms},
    )
    return serialize_task(task)


@router.get("/tasks/{task_id}/activities")
async def task_activities(
    task_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_task(session, task_id, user)
    return [serialize_activity(a) for a in await list_activities(session, task_id, limit)]


# ══════════════════════════════════════════════════════════════════════════
# SUBTASKS
# ══════════════════════════════════════════════════════════════════════════


@router.get("/tasks/{task_id}/subtasks")
async def list_subtasks(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_task(session, task_id, user)
    return [serialize_subtask(s) for s in await _subtasks(session, task_id)]


@router.post("/tasks/{task_id}/subtasks")
async def create_subtask(
    task_id: str,
    req: CreateSubtaskRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Append a subtask after the existing ones."""
    task = await member_task(session, task_id, user)
    result = await session.execute(
        select(func.max(Subtask.order)).where(Subtask.task_id == task_id)
    )
    current_max = result.scalar()
    subtask = Subtask(
        id=gen_id("sub_"),
        task_id=task_id,
        title=req.title,
        is_completed=False,
        order=0 if current_max is None else current_max + 1,
    )
    session.add(subtask)
    await session.commit()

    await publish_event(
        task.workspace_id, "SUBTASK_CREATED", {"taskId": task_id, "subtaskId": subtask.id}
    )
    return serialize_subtask(subtask)


@router.put("/tasks/{task_id}/subtasks/order")
async def reorder_subtasks(
    task_id: str,
    req: ReorderSubtasksRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Set subtask order; the request must list every subtask exactly once."""
    task = await member_task(session, task_id, user)
    subtasks = {s.id: s for s in await _subtasks(session, task_id)}
    if len(req.subtaskIds) != len(set(req.subtaskIds)) or set(req.subtaskIds) != set(
        subtasks
    ):
        raise HTTPException(
            status_code=400, detail="subtaskIds must list every subtask of the task once"
        )
    for position, subtask_id in enumerate(req.subtaskIds):
        subtasks[subtask_id].order = position
    await session.commit()

    await publish_event(task.workspace_id, "SUBTASKS_REORDERED", {"taskId": task_id})
    return [serialize_subtask(subtasks[sid]) for sid in req.subtaskIds]


@router.patch("/subtasks/{subtask_id}")
async def update_subtask(
    subtask_id: str,
    req: UpdateSubtaskRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    subtask, task = await _subtask_with_task(session, subtask_id, user)
    if req.title is not None:
        subtask.title = req.title
    if req.isCompleted is not None:
        subtask.is_completed = req.isCompleted
    await session.commit()

    await publish_event(
        task.workspace_id, "SUBTASK_UPDATED", {"taskId": task.id, "subtaskId": subtask.id}
    )
    return serialize_subtask(subtask)


@router.post("/subtasks/{subtask_id}/toggle")
async def toggle_subtask(
    subtask_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    subtask, task = await _subtask_with_task(session, subtask_id, user)
    subtask.is_completed = not subtask.is_completed
    await session.commit()

    await publish_event(
        task.workspace_id,
        "SUBTASK_UPDATED",
        {"taskId": task.id, "subtaskId": subtask.id, "isCompleted": subtask.is_completed},
    )
    return serialize_subtask(subtask)


@router.delete("/subtasks/{subtask_id}")
async def delete_subtask(
    subtask_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    subtask, task = await _subtask_with_task(session, subtask_id, user)
    await session.delete(subtask)
    await session.commit()

    await publish_event(
        task.workspace_id, "SUBTASK_DELETED", {"taskId": task.id, "subtaskId": subtask_id}
    )
    return {"status": "deleted", "subtask_id": subtask_id}


# ══════════════════════════════════════════════════════════════════════════
# DEPENDENCIES
# ══════════════════════════════════════════════════════════════════════════


@router.get("/tasks/{task_id}/dependencies")
async def list_dependencies(
    task_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Edges where the task is either end."""
    await member_task(session, task_id, user)
    return [serialize_dependency(d) for d in await _dependencies(session, task_id)]


@router.post("/tasks/{task_id}/dependencies")
async def add_dependency(
    task_id: str,
    req: AddDependencyRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    task = await member_task(session, task_id, user)
    if req.toTaskId == task_id:
        raise HTTPException(status_code=400, detail="A task cannot depend on itself")
    await _task_in_workspace(session, req.toTaskId, task.workspace_id)

    existing = await session.execute(
        select(TaskDependency.id).where(
            TaskDependency.from_task_id == task_id,
            TaskDependency.to_task_id == req.toTaskId,
            TaskDependency.type == req.type,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail="Dependency already exists")

    dep = TaskDependency(
        id=gen_id("dep_"),
        workspace_id=task.workspace_id,
        from_task_id=task_id,
        to_task_id=req.toTaskId,
        type=req.type,
    )
    session.add(dep)
    await session.commit()

    await publish_event(
        task.workspace_id,
        "DEPENDENCY_ADDED",
        {"dependencyId": dep.id, "fromTaskId": task_id, "toTaskId": req.toTaskId},
    )
    return serialize_dependency(dep)


@router.delete("/dependencies/{dependency_id}")
async def remove_dependency(
    dependency_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    dep = await session.get(TaskDependency, dependency_id)
    if not dep:
        raise HTTPException(status_code=404, detail="Dependency not found")
    await member_workspace(session, dep.workspace_id, user)
    workspace_id = dep.workspace_id
    await session.delete(dep)
    await session.commit()

    await publish_event(workspace_id, "DEPENDENCY_REMOVED", {"dependencyId": dependency_id})
    return {"status": "deleted", "dependency_id": dependency_id}

"""Phase endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import AuthUser, get_current_user
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import Phase
from sampha.services.activity import record_activity
from sampha.services.deletion import delete_phase
from sampha.services.events import publish_event
from sampha.utils import gen_id

from ._common import (
    Name,
    check_date_range,
    member_phase,
    member_project,
    serialize_phase,
)

logger = get_logger(__name__)
router = APIRouter()


class CreatePhaseRequest(BaseModel):
    name: Name
    startDate: Optional[int] = None
    endDate: Optional[int] = None
    order: Optional[int] = None


class UpdatePhaseRequest(BaseModel):
    name: Optional[Name] = None
    startDate: Optional[int] = None
    endDate: Optional[int] = None
    order: Optional[int] = None


@router.get("/projects/{project_id}/phases")
async def list_phases(
    project_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    await member_project(session, project_id, user)
    result = await session.execute(
        select(Phase).where(Phase.project_id == project_id).order_by(Phase.order)
    )
    return [serialize_phase(p) for p in result.scalars().all()]


@router.post("/projects/{project_id}/phases")
async def create_phase(
    project_id: str,
    req: CreatePhaseRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a phase; without an explicit order it goes last."""
    project = await member_project(session, project_id, user)
    check_date_range(req.startDate, req.endDate, "End date")

    order = req.order
    if order is None:
        result = await session.execute(
            select(func.max(Phase.order)).where(Phase.project_id == project_id)
        )
        current_max = result.scalar()
        order = 0 if current_max is None else current_max + 1

    phase = Phase(
        id=gen_id("ph_"),
        project_id=project_id,
        name=req.name,
        start_date=req.startDate,
        end_date=req.endDate,
        order=order,
    )
    session.add(phase)
    await session.flush()
    await record_activity(
        session, project.workspace_id, "phase", phase.id, "created", user.id,
        {"name": phase.name, "projectId": project_id},
    )
    await session.commit()

    await publish_event(
        project.workspace_id,
        "PHASE_CREATED",
        {"projectId": project_id, "phaseId": phase.id},
    )
    return serialize_phase(phase)


@router.patch("/phases/{phase_id}")
async def update_phase(
    phase_id: str,
    req: UpdatePhaseRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    phase, project = await member_phase(session, phase_id, user)
    updates = req.model_dump(exclude_unset=True)
    if updates.get("name") is None:
        updates.pop("name", None)
    if updates.get("order") is None:
        updates.pop("order", None)

    check_date_range(
        updates.get("startDate", phase.start_date),
        updates.get("endDate", phase.end_date),
        "End date",
    )
    if "name" in updates:
        phase.name = updates["name"]
    if "startDate" in updates:
        phase.start_date = updates["startDate"]
    if "endDate" in updates:
        phase.end_date = updates["endDate"]
    if "order" in updates:
        phase.order = updates["order"]
    if updates:
        await record_activity(
            session, project.workspace_id, "phase", phase.id, "updated", user.id,
            {"fields": sorted(updates)},
        )
    await session.commit()

    await publish_event(
        project.workspace_id, "PHASE_UPDATED", {"projectId": project.id, "phaseId": phase.id}
    )
    return serialize_phase(phase)


@router.delete("/phases/{phase_id}")
async def remove_phase(
    phase_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a phase together with its tasks."""
    phase, project = await member_phase(session, phase_id, user)
    report = await delete_phase(session, phase_id)
    await session.commit()

    logger.debug(f"Phase deleted: {phase_id} ({report.total} rows)")
    await publish_event(
        project.workspace_id, "PHASE_DELETED", {"projectId": project.id, "phaseId": phase_id}
    )
    return {"status": "deleted", "phase_id": phase_id, "deleted": report.as_dict()}

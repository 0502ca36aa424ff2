"""API routers for activities, their subtasks, assignees and history."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from sectorboard.models import (
    ACTIVITY_STATUSES,
    Activity,
    ActivityCreate,
    ActivityHistoryEntry,
    ActivityPatch,
    ActivityStatus,
    Subtask,
)
from sectorboard.routers.deps import failure, require_user
from sectorboard.services.activities import ActivityScope
from sectorboard.services.history import HistoryFilters

activities_router = APIRouter(prefix="/api/activities", tags=["activities"])


class StatusChange(BaseModel):
    status: ActivityStatus


class AssigneeSet(BaseModel):
    user_ids: list[str] = Field(default_factory=list)


class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    checklist_group: Optional[str] = None


class SubtaskPatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class SubtaskOrder(BaseModel):
    ordered_ids: list[str]


@activities_router.get("", response_model=list[Activity])
async def list_activities(
    request: Request,
    subsector_id: Optional[str] = None,
    user_id: Optional[str] = None,
    status: list[str] = Query(default=[]),
    include_archived: bool = False,
):
    dashboard = require_user(request)
    unknown = [s for s in status if s not in ACTIVITY_STATUSES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown status: {', '.join(unknown)}")
    scope = ActivityScope(
        sector_id=dashboard.session.profile.sector_id or "",
        subsector_id=subsector_id,
        user_id=user_id,
        statuses=tuple(status),
        include_archived=include_archived,
    )
    service = dashboard.activities
    activities = await service.set_scope(scope)
    if service.error:
        raise HTTPException(status_code=502, detail=service.error)
    return activities


@activities_router.post("", response_model=Activity, status_code=201)
async def create_activity(request: Request, body: ActivityCreate):
    dashboard = require_user(request)
    activity = await dashboard.activities.create(body)
    if activity is None:
        raise failure(dashboard, "Could not create activity")
    return activity


@activities_router.patch("/{activity_id}", response_model=Activity)
async def update_activity(request: Request, activity_id: str, body: ActivityPatch):
    dashboard = require_user(request)
    activity = await dashboard.activities.update(activity_id, body)
    if activity is None:
        raise failure(dashboard, "Could not update activity")
    return activity


@activities_router.put("/{activity_id}/status", response_model=Activity)
async def change_status(request: Request, activity_id: str, body: StatusChange):
    dashboard = require_user(request)
    activity = await dashboard.activities.update_status(activity_id, body.status)
    if activity is None:
        raise failure(dashboard, "Could not change activity status")
    return activity


@activities_router.post("/{activity_id}/archive", response_model=Activity)
async def archive_activity(request: Request, activity_id: str):
    dashboard = require_user(request)
    activity = await dashboard.activities.archive(activity_id)
    if activity is None:
        raise failure(dashboard, "Could not archive activity")
    return activity


@activities_router.post("/{activity_id}/unarchive", response_model=Activity)
async def unarchive_activity(request: Request, activity_id: str):
    dashboard = require_user(request)
    activity = await dashboard.activities.unarchive(activity_id)
    if activity is None:
        raise failure(dashboard, "Could not unarchive activity")
    return activity


@activities_router.delete("/{activity_id}")
async def delete_activity(request: Request, activity_id: str):
    dashboard = require_user(request)
    if not await dashboard.activities.delete(activity_id):
        raise failure(dashboard, "Could not delete activity")
    return {"deleted": activity_id}


@activities_router.put("/{activity_id}/assignees")
async def set_assignees(request: Request, activity_id: str, body: AssigneeSet):
    dashboard = require_user(request)
    if not await dashboard.assignees.replace(activity_id, body.user_ids):
        raise failure(dashboard, "Could not update assignees")
    return {"activity_id": activity_id, "user_ids": await dashboard.assignees.list_ids(activity_id)}


@activities_router.get("/{activity_id}/history")
async def activity_history(request: Request, activity_id: str, limit: Optional[int] = Query(None, ge=1, le=500)):
    dashboard = require_user(request)
    entries: list[ActivityHistoryEntry] = await dashboard.history.set_filters(
        HistoryFilters(activity_id=activity_id, limit=limit)
    )
    return [
        {**entry.model_dump(), "description": dashboard.history.describe(entry)}
        for entry in entries
    ]


# ── Subtasks ──────────────────────────────────────────────────────

@activities_router.get("/{activity_id}/subtasks", response_model=list[Subtask])
async def list_subtasks(request: Request, activity_id: str):
    dashboard = require_user(request)
    return await dashboard.subtasks.list_for_activity(activity_id)


@activities_router.post("/{activity_id}/subtasks", response_model=Subtask, status_code=201)
async def add_subtask(request: Request, activity_id: str, body: SubtaskCreate):
    dashboard = require_user(request)
    subtask = await dashboard.subtasks.add(activity_id, body.title, body.description, body.checklist_group)
    if subtask is None:
        raise failure(dashboard, "Could not add subtask", service=dashboard.subtasks)
    return subtask


@activities_router.patch("/{activity_id}/subtasks/{subtask_id}", response_model=Subtask)
async def update_subtask(request: Request, activity_id: str, subtask_id: str, body: SubtaskPatch):
    dashboard = require_user(request)
    subtask = await dashboard.subtasks.update(
        subtask_id, activity_id=activity_id, title=body.title, description=body.description,
    )
    if subtask is None:
        raise failure(dashboard, "Could not update subtask", service=dashboard.subtasks)
    return subtask


@activities_router.post("/{activity_id}/subtasks/{subtask_id}/toggle", response_model=Subtask)
async def toggle_subtask(request: Request, activity_id: str, subtask_id: str):
    dashboard = require_user(request)
    subtask = await dashboard.subtasks.toggle(subtask_id, activity_id)
    if subtask is None:
        raise failure(dashboard, "Could not update subtask", service=dashboard.subtasks)
    return subtask


@activities_router.delete("/{activity_id}/subtasks/{subtask_id}")
async def delete_subtask(request: Request, activity_id: str, subtask_id: str):
    dashboard = require_user(request)
    if not await dashboard.subtasks.delete(subtask_id, activity_id):
        raise failure(dashboard, "Could not delete subtask", service=dashboard.subtasks)
    return {"deleted": subtask_id}


@activities_router.put("/{activity_id}/subtasks/order", response_model=list[Subtask])
async def reorder_subtasks(request: Request, activity_id: str, body: SubtaskOrder):
    dashboard = require_user(request)
    if not await dashboard.subtasks.reorder(activity_id, body.ordered_ids):
        raise failure(dashboard, "Could not reorder subtasks", service=dashboard.subtasks)
    return await dashboard.subtasks.list_for_activity(activity_id)

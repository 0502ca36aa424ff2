"""API router for personal lists."""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from sectorboard.models import Activity, PersonalList
from sectorboard.routers.deps import failure, require_user

lists_router = APIRouter(prefix="/api/lists", tags=["lists"])


class ListName(BaseModel):
    name: str = Field(..., min_length=1)


@lists_router.get("", response_model=list[PersonalList])
async def list_lists(request: Request):
    dashboard = require_user(request)
    return await dashboard.lists.refetch()


@lists_router.post("", response_model=PersonalList, status_code=201)
async def create_list(request: Request, body: ListName):
    dashboard = require_user(request)
    created = await dashboard.lists.create(body.name)
    if created is None:
        raise failure(dashboard, "Could not create list")
    return created


@lists_router.patch("/{list_id}", response_model=PersonalList)
async def rename_list(request: Request, list_id: str, body: ListName):
    dashboard = require_user(request)
    renamed = await dashboard.lists.rename(list_id, body.name)
    if renamed is None:
        raise failure(dashboard, "Could not rename list", status_code=404)
    return renamed


@lists_router.delete("/{list_id}")
async def delete_list(request: Request, list_id: str):
    dashboard = require_user(request)
    if not await dashboard.lists.delete(list_id):
        raise failure(dashboard, "Could not delete list", status_code=404)
    return {"deleted": list_id}


@lists_router.get("/{list_id}/activities", response_model=list[Activity])
async def list_activities(request: Request, list_id: str):
    dashboard = require_user(request)
    return await dashboard.lists.activities_in_list(list_id)

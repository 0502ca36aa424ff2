"""API routers for the sector roster, subsector memberships and invitations."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from sectorboard.models import Invitation, Profile, UserRole
from sectorboard.routers.deps import failure, require_manager, require_user
from sectorboard.services.history import HistoryFilters

team_router = APIRouter(prefix="/api/team", tags=["team"])
invitations_router = APIRouter(prefix="/api/invitations", tags=["invitations"])
history_router = APIRouter(prefix="/api/history", tags=["history"])


class SubsectorSet(BaseModel):
    subsector_ids: list[str] = Field(default_factory=list)


class InvitationCreate(BaseModel):
    email: str = Field(..., min_length=3)
    subsector_id: Optional[str] = None
    role: UserRole = "collaborator"


@team_router.get("", response_model=list[Profile])
async def list_members(request: Request):
    dashboard = require_user(request)
    return await dashboard.collaborators.refetch()


@team_router.delete("/{user_id}")
async def remove_member(request: Request, user_id: str):
    dashboard = require_manager(request)
    if not await dashboard.collaborators.delete_user(user_id):
        raise failure(dashboard, "Could not remove user")
    return {"deleted": user_id}


@team_router.get("/{user_id}/subsectors")
async def get_subsectors(request: Request, user_id: str):
    dashboard = require_user(request)
    return {"user_id": user_id, "subsector_ids": await dashboard.memberships.list_ids(user_id)}


@team_router.put("/{user_id}/subsectors")
async def set_subsectors(request: Request, user_id: str, body: SubsectorSet):
    dashboard = require_manager(request)
    if not await dashboard.memberships.replace(user_id, body.subsector_ids):
        raise failure(dashboard, "Could not update subsectors")
    return {"user_id": user_id, "subsector_ids": await dashboard.memberships.list_ids(user_id)}


@invitations_router.get("", response_model=list[Invitation])
async def list_invitations(request: Request):
    dashboard = require_manager(request)
    return await dashboard.invitations.refetch()


@invitations_router.post("", response_model=Invitation, status_code=201)
async def create_invitation(request: Request, body: InvitationCreate):
    dashboard = require_manager(request)
    invitation = await dashboard.invitations.create(body.email, body.subsector_id, body.role)
    if invitation is None:
        raise failure(dashboard, "Could not create invitation")
    return invitation


@invitations_router.post("/{invitation_id}/resend")
async def resend_invitation(request: Request, invitation_id: str):
    dashboard = require_manager(request)
    if not await dashboard.invitations.resend(invitation_id):
        raise failure(dashboard, "Could not resend invitation")
    return {"resent": invitation_id}


@invitations_router.delete("/{invitation_id}")
async def cancel_invitation(request: Request, invitation_id: str):
    dashboard = require_manager(request)
    if not await dashboard.invitations.cancel(invitation_id):
        raise failure(dashboard, "Could not cancel invitation", status_code=404)
    return {"cancelled": invitation_id}


@history_router.get("")
async def sector_history(
    request: Request,
    subsector_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: Optional[int] = Query(100, ge=1, le=500),
):
    dashboard = require_user(request)
    for value in (date_from, date_to):
        if value:
            try:
                date.fromisoformat(value[:10])
            except ValueError:
                raise HTTPException(status_code=422, detail="Dates must use YYYY-MM-DD")
    entries = await dashboard.history.set_filters(
        HistoryFilters(subsector_id=subsector_id, date_from=date_from, date_to=date_to, limit=limit)
    )
    return [
        {**entry.model_dump(), "description": dashboard.history.describe(entry)}
        for entry in entries
    ]

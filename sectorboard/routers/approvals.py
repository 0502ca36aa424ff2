"""API router for pending-user approval."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from sectorboard.models import PendingUser, Profile
from sectorboard.routers.deps import failure, require_manager

approvals_router = APIRouter(prefix="/api/pending-users", tags=["approvals"])


def _require_approver(request: Request):
    dashboard = require_manager(request)
    if not dashboard.session.is_approved_manager:
        raise HTTPException(status_code=403, detail="Your manager account is not approved yet")
    return dashboard


@approvals_router.get("", response_model=list[PendingUser])
async def list_pending(request: Request):
    dashboard = _require_approver(request)
    service = dashboard.pending_users
    pending = await service.refetch()
    if service.error:
        raise HTTPException(status_code=502, detail=service.error)
    return pending


@approvals_router.post("/{pending_id}/approve", response_model=Profile)
async def approve(request: Request, pending_id: str):
    dashboard = _require_approver(request)
    profile = await dashboard.pending_users.approve(pending_id)
    if profile is None:
        raise failure(dashboard, "Could not approve user")
    return profile


@approvals_router.post("/{pending_id}/reject")
async def reject(request: Request, pending_id: str):
    dashboard = _require_approver(request)
    if not await dashboard.pending_users.reject(pending_id):
        raise failure(dashboard, "Could not reject user")
    return {"rejected": pending_id}

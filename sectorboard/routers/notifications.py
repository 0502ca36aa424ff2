"""API routers for toasts and the per-user notification inbox."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from sectorboard.models import Notification, Toast
from sectorboard.routers.deps import failure, get_dashboard, require_user

notifications_router = APIRouter(prefix="/api/notifications", tags=["notifications"])
inbox_router = APIRouter(prefix="/api/inbox", tags=["inbox"])


@notifications_router.get("", response_model=list[Toast])
async def list_toasts(request: Request):
    return get_dashboard(request).notifier.toasts


@notifications_router.delete("/{toast_id}")
async def dismiss_toast(request: Request, toast_id: str):
    if not get_dashboard(request).notifier.dismiss(toast_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"dismissed": toast_id}


@notifications_router.delete("")
async def dismiss_all(request: Request):
    get_dashboard(request).notifier.clear()
    return {"dismissed": "all"}


@inbox_router.get("")
async def get_inbox(request: Request):
    dashboard = require_user(request)
    items: list[Notification] = await dashboard.inbox.refetch()
    return {"unread": dashboard.inbox.unread_count, "items": [n.model_dump() for n in items]}


@inbox_router.post("/{notification_id}/read")
async def mark_read(request: Request, notification_id: str):
    dashboard = require_user(request)
    if not await dashboard.inbox.mark_read(notification_id):
        raise failure(dashboard, "Could not update notification", status_code=404)
    return {"unread": dashboard.inbox.unread_count}


@inbox_router.post("/read-all")
async def mark_all_read(request: Request):
    dashboard = require_user(request)
    updated = await dashboard.inbox.mark_all_read()
    return {"updated": updated, "unread": dashboard.inbox.unread_count}

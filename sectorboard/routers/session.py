"""API router for the signed-in session."""
from __future__ import annotations

from fastapi import APIRouter, Request

from sectorboard.routers.deps import get_dashboard

session_router = APIRouter(prefix="/api/session", tags=["session"])


@session_router.get("")
async def get_session(request: Request):
    """Current user, profile and role flags."""
    return get_dashboard(request).session.snapshot()


@session_router.post("/restore")
async def restore_session(request: Request):
    """Re-run bootstrap after an external sign-in wrote a new session."""
    dashboard = get_dashboard(request)
    if not dashboard.session.is_authenticated:
        dashboard.session.reset_lifecycle()
    await dashboard.start()
    return dashboard.session.snapshot()


@session_router.post("/sign-out")
async def sign_out(request: Request):
    dashboard = get_dashboard(request)
    await dashboard.sign_out()
    return dashboard.session.snapshot()

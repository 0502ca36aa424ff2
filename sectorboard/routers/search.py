"""API router for activity search."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from sectorboard.models import Activity
from sectorboard.routers.deps import require_user

search_router = APIRouter(prefix="/api/search", tags=["search"])


@search_router.get("", response_model=list[Activity])
async def search_activities(request: Request, q: str = Query("")):
    """Immediate search; the browser view debounces keystrokes itself."""
    dashboard = require_user(request)
    search = dashboard.search
    results = await search.search_now(q)
    if search.error:
        raise HTTPException(status_code=502, detail=search.error)
    return results

"""Request-scoped access to the dashboard for the API routers."""
from __future__ import annotations

from fastapi import HTTPException, Request

from sectorboard.dashboard import Dashboard
from sectorboard.errors import NotFoundError
from sectorboard.services.base import BaseService


def get_dashboard(request: Request) -> Dashboard:
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(status_code=503, detail="Dashboard is not ready")
    return dashboard


def require_user(request: Request) -> Dashboard:
    dashboard = get_dashboard(request)
    if dashboard.session.loading:
        raise HTTPException(status_code=503, detail="Session is still loading")
    if not dashboard.session.is_authenticated:
        raise HTTPException(status_code=401, detail="Not signed in")
    return dashboard


def require_manager(request: Request) -> Dashboard:
    dashboard = require_user(request)
    if not dashboard.session.is_manager:
        raise HTTPException(status_code=403, detail="Managers only")
    return dashboard


def failure(dashboard: Dashboard, default: str, status_code: int = 400, service: BaseService | None = None) -> HTTPException:
    """HTTP error carrying the plain-language title of the latest error toast.

    When ``service`` last failed on a missing row the status becomes 404.
    """
    if service is not None and isinstance(service.last_failure, NotFoundError):
        status_code = 404
    toasts = dashboard.notifier.toasts
    detail = toasts[-1].title if toasts and toasts[-1].variant == "destructive" else default
    return HTTPException(status_code=status_code, detail=detail)

"""SectorBoard FastAPI service: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sectorboard import config
from sectorboard.dashboard import Dashboard
from sectorboard.db import connection, migrations
from sectorboard.db.change_feed import ChangeFeed, PostgresChangeListener
from sectorboard.errors import SubscriptionError
from sectorboard.observability import initialize as initialize_observability, shutdown as shutdown_observability
from sectorboard.routers.activities import activities_router
from sectorboard.routers.approvals import approvals_router
from sectorboard.routers.lists import lists_router
from sectorboard.routers.notifications import inbox_router, notifications_router
from sectorboard.routers.search import search_router
from sectorboard.routers.session import session_router
from sectorboard.routers.team import history_router, invitations_router, team_router
from sectorboard.session import PersistedSessionAuth

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sectorboard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("SectorBoard starting up")

    # 1. Missing backend settings are fatal
    config.require_backend_settings()
    initialize_observability(app)

    # 2. Connect and migrate
    db = await connection.get_connection()
    kind = await migrations.run_migrations(db)
    logger.info(f"Database ready ({kind})")

    # 3. Remote change notifications (Postgres only; SQLite sees local changes)
    feed = ChangeFeed()
    listener = None
    if config.backend_kind() == "postgres":
        listener = PostgresChangeListener(db, feed)
        try:
            await listener.start()
        except SubscriptionError as e:
            logger.error(f"Realtime updates unavailable: {e}")
            listener = None
    app.state.change_listener = listener

    # 4. Restore the session and load the dashboard
    dashboard = Dashboard(db, PersistedSessionAuth(config.SESSION_FILE), feed=feed)
    app.state.dashboard = dashboard
    await dashboard.start()

    yield

    logger.info("SectorBoard shutting down")
    await dashboard.close()
    if listener is not None:
        await listener.stop()
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="SectorBoard API",
    description="Backend API for the SectorBoard activity dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the Vite dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(session_router)
app.include_router(activities_router)
app.include_router(search_router)
app.include_router(approvals_router)
app.include_router(lists_router)
app.include_router(notifications_router)
app.include_router(inbox_router)
app.include_router(team_router)
app.include_router(invitations_router)
app.include_router(history_router)


@app.get("/api/health")
def health(request: Request):
    """Health check endpoint."""
    listener = getattr(request.app.state, "change_listener", None)
    dashboard = getattr(request.app.state, "dashboard", None)
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
        "backend": config.backend_kind(),
        "realtime": "listening" if listener is not None and listener.is_running else "local-only",
        "subscriptions": dashboard.bridge.stats() if dashboard else [],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sectorboard.main:app", host=config.HOST, port=config.PORT)

"""Shared fixtures: an in-memory organization and signed-in dashboards."""
from __future__ import annotations

from typing import Optional

import aiosqlite

from sectorboard.dashboard import Dashboard
from sectorboard.db.repositories.activities import SqliteActivityRepository
from sectorboard.db.repositories.profiles import SqliteProfileRepository
from sectorboard.db.sqlite_migrations import run_migrations
from sectorboard.functions import FunctionsClient
from sectorboard.models import AuthSession, AuthUser

SECTOR = "sector-1"
SUB_1 = "sub-1"
SUB_2 = "sub-2"
MANAGER = "user-manager"
COLLAB_1 = "user-c1"
COLLAB_2 = "user-c2"


class StaticAuth:
    def __init__(self, session: Optional[AuthSession] = None):
        self.session = session
        self.get_calls = 0
        self.sign_outs = 0

    async def get_session(self) -> Optional[AuthSession]:
        self.get_calls += 1
        return self.session

    async def sign_out(self) -> None:
        self.sign_outs += 1
        self.session = None


def auth_for(user_id: str) -> StaticAuth:
    return StaticAuth(AuthSession(access_token=f"token-{user_id}", user=AuthUser(id=user_id, email=f"{user_id}@example.com")))


async def open_db() -> aiosqlite.Connection:
    db = await aiosqlite.connect(":memory:")
    db.row_factory = aiosqlite.Row
    await run_migrations(db)
    return db


async def seed_org(db: aiosqlite.Connection) -> None:
    await db.execute("INSERT INTO sectors (id, name) VALUES (?, ?)", (SECTOR, "Operations"))
    await db.executemany(
        "INSERT INTO subsectors (id, sector_id, name) VALUES (?, ?, ?)",
        [(SUB_1, SECTOR, "Logistics"), (SUB_2, SECTOR, "Finance")],
    )
    await db.commit()
    profiles = SqliteProfileRepository(db)
    await profiles.create({"id": MANAGER, "email": "m@example.com", "full_name": "Maria Manager",
                           "role": "manager", "sector_id": SECTOR, "is_approved": True})
    await profiles.create({"id": COLLAB_1, "email": "c1@example.com", "full_name": "Carl One",
                           "sector_id": SECTOR, "subsector_id": SUB_1, "is_approved": True})
    await profiles.create({"id": COLLAB_2, "email": "c2@example.com", "full_name": "Cora Two",
                           "sector_id": SECTOR, "subsector_id": SUB_2, "is_approved": True})


async def insert_activity(db: aiosqlite.Connection, activity_id: str, created_by: str, **fields) -> dict:
    data = {
        "id": activity_id,
        "title": fields.pop("title", activity_id),
        "created_by": created_by,
        "sector_id": fields.pop("sector_id", SECTOR),
        **fields,
    }
    return await SqliteActivityRepository(db).create(data)


async def signed_in(db: aiosqlite.Connection, user_id: str, functions: Optional[FunctionsClient] = None) -> Dashboard:
    dashboard = Dashboard(
        db,
        auth_for(user_id),
        functions=functions or FunctionsClient(base_url="http://functions.test", api_key="anon-key"),
        realtime_debounce_ms=20,
        search_debounce_ms=20,
    )
    await dashboard.bootstrapper.bootstrap()
    return dashboard

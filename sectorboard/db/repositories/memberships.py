"""SQLite implementations of the two many-to-many membership tables.

Both use replace-all semantics: the caller passes the complete new set.
"""
from __future__ import annotations

from typing import Iterable

import aiosqlite

from sectorboard.db.queries import Params


class SqliteAssigneeRepository:
    """``activity_assignees``: extra responsible users per activity."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def list_ids(self, activity_id: str) -> list[str]:
        async with self.db.execute(
            "SELECT user_id FROM activity_assignees WHERE activity_id = ? ORDER BY created_at, user_id",
            (activity_id,),
        ) as cur:
            return [r["user_id"] for r in await cur.fetchall()]

    async def list_for_activities(self, activity_ids: Iterable[str]) -> dict[str, list[str]]:
        ids = list(activity_ids)
        if not ids:
            return {}
        params = Params("qmark")
        result: dict[str, list[str]] = {}
        async with self.db.execute(
            f"SELECT activity_id, user_id FROM activity_assignees WHERE activity_id IN ({params.add_many(ids)}) "
            "ORDER BY created_at, user_id",
            params.values,
        ) as cur:
            for row in await cur.fetchall():
                result.setdefault(row["activity_id"], []).append(row["user_id"])
        return result

    async def replace(self, activity_id: str, user_ids: Iterable[str]) -> None:
        await self.db.execute("DELETE FROM activity_assignees WHERE activity_id = ?", (activity_id,))
        await self.db.executemany(
            "INSERT OR IGNORE INTO activity_assignees (activity_id, user_id) VALUES (?, ?)",
            [(activity_id, user_id) for user_id in user_ids],
        )
        await self.db.commit()


class SqliteSubsectorMembershipRepository:
    """``profile_subsectors``: subsectors a collaborator works in."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def list_ids(self, profile_id: str) -> list[str]:
        async with self.db.execute(
            "SELECT subsector_id FROM profile_subsectors WHERE profile_id = ? ORDER BY created_at, subsector_id",
            (profile_id,),
        ) as cur:
            return [r["subsector_id"] for r in await cur.fetchall()]

    async def replace(self, profile_id: str, subsector_ids: Iterable[str]) -> None:
        await self.db.execute("DELETE FROM profile_subsectors WHERE profile_id = ?", (profile_id,))
        await self.db.executemany(
            "INSERT OR IGNORE INTO profile_subsectors (profile_id, subsector_id) VALUES (?, ?)",
            [(profile_id, subsector_id) for subsector_id in subsector_ids],
        )
        await self.db.commit()

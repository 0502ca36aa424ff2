"""PostgreSQL implementations of the membership tables (replace-all)."""
from __future__ import annotations

from typing import Iterable

import asyncpg


class PostgresAssigneeRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def list_ids(self, activity_id: str) -> list[str]:
        rows = await self.db.fetch(
            "SELECT user_id FROM activity_assignees WHERE activity_id = $1 ORDER BY created_at, user_id",
            activity_id,
        )
        return [r["user_id"] for r in rows]

    async def list_for_activities(self, activity_ids: Iterable[str]) -> dict[str, list[str]]:
        ids = list(activity_ids)
        if not ids:
            return {}
        rows = await self.db.fetch(
            "SELECT activity_id, user_id FROM activity_assignees WHERE activity_id = ANY($1::text[]) "
            "ORDER BY created_at, user_id",
            ids,
        )
        result: dict[str, list[str]] = {}
        for row in rows:
            result.setdefault(row["activity_id"], []).append(row["user_id"])
        return result

    async def replace(self, activity_id: str, user_ids: Iterable[str]) -> None:
        await self.db.execute("DELETE FROM activity_assignees WHERE activity_id = $1", activity_id)
        await self.db.executemany(
            "INSERT INTO activity_assignees (activity_id, user_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
            [(activity_id, user_id) for user_id in user_ids],
        )


class PostgresSubsectorMembershipRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def list_ids(self, profile_id: str) -> list[str]:
        rows = await self.db.fetch(
            "SELECT subsector_id FROM profile_subsectors WHERE profile_id = $1 ORDER BY created_at, subsector_id",
            profile_id,
        )
        return [r["subsector_id"] for r in rows]

    async def replace(self, profile_id: str, subsector_ids: Iterable[str]) -> None:
        await self.db.execute("DELETE FROM profile_subsectors WHERE profile_id = $1", profile_id)
        await self.db.executemany(
            "INSERT INTO profile_subsectors (profile_id, subsector_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
            [(profile_id, subsector_id) for subsector_id in subsector_ids],
        )

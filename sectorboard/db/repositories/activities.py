"""SQLite implementation of ActivityRepository."""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from sectorboard.db.queries import (
    ACTIVITY_PATCHABLE,
    ACTIVITY_SELECT,
    ActivityQuery,
    Params,
    build_activity_select,
    build_patch,
)


class SqliteActivityRepository:
    """SQLite-backed activity storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        activity_id = data.get("id") or str(uuid.uuid4())
        await self.db.execute(
            """INSERT INTO activities (
                id, title, description, status, priority, due_date,
                estimated_time, user_id, created_by, sector_id, subsector_id,
                list_id, is_private, completed_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                activity_id,
                data["title"],
                data.get("description"),
                data.get("status", "pending"),
                data.get("priority", "medium"),
                data.get("due_date"),
                data.get("estimated_time"),
                data.get("user_id"),
                data["created_by"],
                data["sector_id"],
                data.get("subsector_id"),
                data.get("list_id"),
                1 if data.get("is_private") else 0,
                data.get("completed_at"),
                data.get("created_at", now),
                now,
            ),
        )
        await self.db.commit()
        return await self.get_by_id(activity_id) or {}

    async def get_by_id(self, activity_id: str) -> dict | None:
        async with self.db.execute(f"{ACTIVITY_SELECT} WHERE a.id = ?", (activity_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_visible(self, query: ActivityQuery) -> list[dict]:
        params = Params("qmark")
        sql = build_activity_select(query, params)
        async with self.db.execute(sql, params.values) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def search(self, query: ActivityQuery, text: str, limit: int) -> list[dict]:
        return await self.list_visible(replace(query, text=text, limit=limit, statuses=(), include_archived=False))

    async def list_by_list(self, list_id: str, created_by: str) -> list[dict]:
        async with self.db.execute(
            f"{ACTIVITY_SELECT} WHERE a.list_id = ? AND a.created_by = ? ORDER BY a.created_at DESC, a.id DESC",
            (list_id, created_by),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def update(self, activity_id: str, patch: dict[str, Any]) -> dict | None:
        """Apply a partial patch; returns the updated row or None when no row matched."""
        values = dict(patch)
        if "is_private" in values and values["is_private"] is not None:
            values["is_private"] = 1 if values["is_private"] else 0
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        params = Params("qmark")
        assignments = build_patch(values, ACTIVITY_PATCHABLE, params)
        cur = await self.db.execute(
            f"UPDATE activities SET {assignments} WHERE id = {params.add(activity_id)}",
            params.values,
        )
        await self.db.commit()
        if cur.rowcount == 0:
            return None
        return await self.get_by_id(activity_id)

    async def delete(self, activity_id: str) -> bool:
        cur = await self.db.execute("DELETE FROM activities WHERE id = ?", (activity_id,))
        await self.db.commit()
        return cur.rowcount > 0

    async def clear_assignee(self, user_id: str) -> int:
        cur = await self.db.execute(
            "UPDATE activities SET user_id = NULL, updated_at = ? WHERE user_id = ?",
            (datetime.now(timezone.utc).isoformat(), user_id),
        )
        await self.db.commit()
        return cur.rowcount

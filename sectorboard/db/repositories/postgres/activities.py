"""PostgreSQL implementation of ActivityRepository."""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import asyncpg

from sectorboard.db.queries import (
    ACTIVITY_PATCHABLE,
    ACTIVITY_SELECT,
    ActivityQuery,
    Params,
    build_activity_select,
    build_patch,
)


def _affected(status: str) -> int:
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostgresActivityRepository:
    """PostgreSQL-backed activity storage."""

    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        activity_id = data.get("id") or str(uuid.uuid4())
        await self.db.execute(
            """
            INSERT INTO activities (
                id, title, description, status, priority, due_date,
                estimated_time, user_id, created_by, sector_id, subsector_id,
                list_id, is_private, completed_at, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
            """,
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
            bool(data.get("is_private")),
            data.get("completed_at"),
            data.get("created_at", now),
            now,
        )
        return await self.get_by_id(activity_id) or {}

    async def get_by_id(self, activity_id: str) -> dict | None:
        row = await self.db.fetchrow(f"{ACTIVITY_SELECT} WHERE a.id = $1", activity_id)
        return dict(row) if row else None

    async def list_visible(self, query: ActivityQuery) -> list[dict]:
        params = Params("numeric")
        sql = build_activity_select(query, params)
        rows = await self.db.fetch(sql, *params.values)
        return [dict(r) for r in rows]

    async def search(self, query: ActivityQuery, text: str, limit: int) -> list[dict]:
        return await self.list_visible(replace(query, text=text, limit=limit, statuses=(), include_archived=False))

    async def list_by_list(self, list_id: str, created_by: str) -> list[dict]:
        rows = await self.db.fetch(
            f"{ACTIVITY_SELECT} WHERE a.list_id = $1 AND a.created_by = $2 ORDER BY a.created_at DESC, a.id DESC",
            list_id,
            created_by,
        )
        return [dict(r) for r in rows]

    async def update(self, activity_id: str, patch: dict[str, Any]) -> dict | None:
        values = dict(patch)
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        params = Params("numeric")
        assignments = build_patch(values, ACTIVITY_PATCHABLE, params)
        status = await self.db.execute(
            f"UPDATE activities SET {assignments} WHERE id = {params.add(activity_id)}",
            *params.values,
        )
        if _affected(status) == 0:
            return None
        return await self.get_by_id(activity_id)

    async def delete(self, activity_id: str) -> bool:
        status = await self.db.execute("DELETE FROM activities WHERE id = $1", activity_id)
        return _affected(status) > 0

    async def clear_assignee(self, user_id: str) -> int:
        status = await self.db.execute(
            "UPDATE activities SET user_id = NULL, updated_at = $1 WHERE user_id = $2",
            datetime.now(timezone.utc).isoformat(),
            user_id,
        )
        return _affected(status)

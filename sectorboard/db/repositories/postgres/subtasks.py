"""PostgreSQL implementation of SubtaskRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import asyncpg

from sectorboard.db.queries import Params, build_patch
from sectorboard.db.repositories.postgres.activities import _affected

_PATCHABLE = frozenset({"title", "description", "is_completed", "order_index", "checklist_group", "updated_at"})


class PostgresSubtaskRepository:
    """PostgreSQL-backed subtask storage."""

    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_by_id(self, subtask_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM subtasks WHERE id = $1", subtask_id)
        return dict(row) if row else None

    async def list_for_activity(self, activity_id: str) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM subtasks WHERE activity_id = $1 ORDER BY order_index, created_at",
            activity_id,
        )
        return [dict(r) for r in rows]

    async def list_for_activities(self, activity_ids: Iterable[str]) -> list[dict]:
        ids = list(activity_ids)
        if not ids:
            return []
        rows = await self.db.fetch(
            "SELECT * FROM subtasks WHERE activity_id = ANY($1::text[]) "
            "ORDER BY activity_id, order_index, created_at",
            ids,
        )
        return [dict(r) for r in rows]

    async def max_order_index(self, activity_id: str) -> int | None:
        value = await self.db.fetchval(
            "SELECT MAX(order_index) FROM subtasks WHERE activity_id = $1", activity_id
        )
        return int(value) if value is not None else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        subtask_id = data.get("id") or str(uuid.uuid4())
        await self.db.execute(
            """
            INSERT INTO subtasks (
                id, activity_id, title, description, is_completed,
                order_index, checklist_group, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            subtask_id,
            data["activity_id"],
            data["title"],
            data.get("description"),
            bool(data.get("is_completed")),
            int(data.get("order_index", 0)),
            data.get("checklist_group"),
            now,
            now,
        )
        return await self.get_by_id(subtask_id) or {}

    async def update(self, subtask_id: str, patch: dict[str, Any]) -> dict | None:
        values = dict(patch)
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        params = Params("numeric")
        assignments = build_patch(values, _PATCHABLE, params)
        status = await self.db.execute(
            f"UPDATE subtasks SET {assignments} WHERE id = {params.add(subtask_id)}",
            *params.values,
        )
        if _affected(status) == 0:
            return None
        return await self.get_by_id(subtask_id)

    async def set_order_indexes(self, orders: Iterable[tuple[str, int]]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.executemany(
            "UPDATE subtasks SET order_index = $1, updated_at = $2 WHERE id = $3",
            [(int(order), now, subtask_id) for subtask_id, order in orders],
        )

    async def delete(self, subtask_id: str) -> bool:
        status = await self.db.execute("DELETE FROM subtasks WHERE id = $1", subtask_id)
        return _affected(status) > 0

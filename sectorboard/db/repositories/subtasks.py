"""SQLite implementation of SubtaskRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import aiosqlite

from sectorboard.db.queries import Params, build_patch

_PATCHABLE = frozenset({"title", "description", "is_completed", "order_index", "checklist_group", "updated_at"})


class SqliteSubtaskRepository:
    """SQLite-backed subtask storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_id(self, subtask_id: str) -> dict | None:
        async with self.db.execute("SELECT * FROM subtasks WHERE id = ?", (subtask_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_for_activity(self, activity_id: str) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM subtasks WHERE activity_id = ? ORDER BY order_index, created_at",
            (activity_id,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def list_for_activities(self, activity_ids: Iterable[str]) -> list[dict]:
        ids = list(activity_ids)
        if not ids:
            return []
        params = Params("qmark")
        async with self.db.execute(
            f"SELECT * FROM subtasks WHERE activity_id IN ({params.add_many(ids)}) "
            "ORDER BY activity_id, order_index, created_at",
            params.values,
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def max_order_index(self, activity_id: str) -> int | None:
        async with self.db.execute(
            "SELECT MAX(order_index) FROM subtasks WHERE activity_id = ?", (activity_id,)
        ) as cur:
            row = await cur.fetchone()
            return int(row[0]) if row and row[0] is not None else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        subtask_id = data.get("id") or str(uuid.uuid4())
        await self.db.execute(
            """INSERT INTO subtasks (
                id, activity_id, title, description, is_completed,
                order_index, checklist_group, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                subtask_id,
                data["activity_id"],
                data["title"],
                data.get("description"),
                1 if data.get("is_completed") else 0,
                int(data.get("order_index", 0)),
                data.get("checklist_group"),
                now,
                now,
            ),
        )
        await self.db.commit()
        return await self.get_by_id(subtask_id) or {}

    async def update(self, subtask_id: str, patch: dict[str, Any]) -> dict | None:
        values = dict(patch)
        if "is_completed" in values:
            values["is_completed"] = 1 if values["is_completed"] else 0
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        params = Params("qmark")
        assignments = build_patch(values, _PATCHABLE, params)
        cur = await self.db.execute(
            f"UPDATE subtasks SET {assignments} WHERE id = {params.add(subtask_id)}",
            params.values,
        )
        await self.db.commit()
        if cur.rowcount == 0:
            return None
        return await self.get_by_id(subtask_id)

    async def set_order_indexes(self, orders: Iterable[tuple[str, int]]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.executemany(
            "UPDATE subtasks SET order_index = ?, updated_at = ? WHERE id = ?",
            [(int(order), now, subtask_id) for subtask_id, order in orders],
        )
        await self.db.commit()

    async def delete(self, subtask_id: str) -> bool:
        cur = await self.db.execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,))
        await self.db.commit()
        return cur.rowcount > 0

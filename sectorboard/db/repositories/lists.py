"""SQLite implementation of PersonalListRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import aiosqlite


class SqlitePersonalListRepository:
    """User-owned named containers of activities."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_id(self, list_id: str) -> dict | None:
        async with self.db.execute("SELECT * FROM personal_lists WHERE id = ?", (list_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_for_user(self, user_id: str) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM personal_lists WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def create(self, user_id: str, sector_id: str, name: str) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        list_id = str(uuid.uuid4())
        await self.db.execute(
            "INSERT INTO personal_lists (id, user_id, sector_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (list_id, user_id, sector_id, name, now, now),
        )
        await self.db.commit()
        return await self.get_by_id(list_id) or {}

    async def rename(self, list_id: str, user_id: str, name: str) -> bool:
        cur = await self.db.execute(
            "UPDATE personal_lists SET name = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (name, datetime.now(timezone.utc).isoformat(), list_id, user_id),
        )
        await self.db.commit()
        return cur.rowcount > 0

    async def delete(self, list_id: str, user_id: str) -> bool:
        cur = await self.db.execute(
            "DELETE FROM personal_lists WHERE id = ? AND user_id = ?", (list_id, user_id)
        )
        await self.db.commit()
        return cur.rowcount > 0

"""PostgreSQL implementation of PersonalListRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import asyncpg

from sectorboard.db.repositories.postgres.activities import _affected


class PostgresPersonalListRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_by_id(self, list_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM personal_lists WHERE id = $1", list_id)
        return dict(row) if row else None

    async def list_for_user(self, user_id: str) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM personal_lists WHERE user_id = $1 ORDER BY created_at, id", user_id
        )
        return [dict(r) for r in rows]

    async def create(self, user_id: str, sector_id: str, name: str) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        list_id = str(uuid.uuid4())
        await self.db.execute(
            "INSERT INTO personal_lists (id, user_id, sector_id, name, created_at, updated_at) "
            "VALUES ($1, $2, $3, $4, $5, $6)",
            list_id, user_id, sector_id, name, now, now,
        )
        return await self.get_by_id(list_id) or {}

    async def rename(self, list_id: str, user_id: str, name: str) -> bool:
        status = await self.db.execute(
            "UPDATE personal_lists SET name = $1, updated_at = $2 WHERE id = $3 AND user_id = $4",
            name, datetime.now(timezone.utc).isoformat(), list_id, user_id,
        )
        return _affected(status) > 0

    async def delete(self, list_id: str, user_id: str) -> bool:
        status = await self.db.execute(
            "DELETE FROM personal_lists WHERE id = $1 AND user_id = $2", list_id, user_id
        )
        return _affected(status) > 0

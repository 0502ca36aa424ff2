"""PostgreSQL implementations of profile and pending-user repositories."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import asyncpg

from sectorboard.db.repositories.postgres.activities import _affected


class PostgresProfileRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_by_id(self, profile_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM profiles WHERE id = $1", profile_id)
        return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """
            INSERT INTO profiles (
                id, email, full_name, avatar_url, role, sector_id, subsector_id,
                is_approved, approved_by, approved_at, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            """,
            data["id"],
            data.get("email", ""),
            data.get("full_name", ""),
            data.get("avatar_url"),
            data.get("role", "collaborator"),
            data.get("sector_id"),
            data.get("subsector_id"),
            bool(data.get("is_approved")),
            data.get("approved_by"),
            data.get("approved_at"),
            data.get("created_at", now),
            now,
        )
        return await self.get_by_id(data["id"]) or {}

    async def list_by_sector(self, sector_id: str) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM profiles WHERE sector_id = $1 ORDER BY full_name", sector_id
        )
        return [dict(r) for r in rows]

    async def delete(self, profile_id: str) -> bool:
        status = await self.db.execute("DELETE FROM profiles WHERE id = $1", profile_id)
        return _affected(status) > 0


class PostgresPendingUserRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_by_id(self, pending_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM pending_users WHERE id = $1", pending_id)
        return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """
            INSERT INTO pending_users (
                id, email, full_name, sector_id, subsector_id, status, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            data["id"],
            data["email"],
            data.get("full_name", ""),
            data.get("sector_id"),
            data.get("subsector_id"),
            data.get("status", "pending"),
            data.get("created_at", now),
            now,
        )
        return await self.get_by_id(data["id"]) or {}

    async def list_pending(self) -> list[dict]:
        rows = await self.db.fetch(
            """
            SELECT pu.*, s.name AS sector_name, ss.name AS subsector_name
            FROM pending_users pu
            LEFT JOIN sectors s ON s.id = pu.sector_id
            LEFT JOIN subsectors ss ON ss.id = pu.subsector_id
            WHERE pu.status = 'pending'
            ORDER BY pu.created_at DESC
            """
        )
        return [dict(r) for r in rows]

    async def set_status(self, pending_id: str, status: str) -> bool:
        result = await self.db.execute(
            "UPDATE pending_users SET status = $1, updated_at = $2 WHERE id = $3",
            status,
            datetime.now(timezone.utc).isoformat(),
            pending_id,
        )
        return _affected(result) > 0

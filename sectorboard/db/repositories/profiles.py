"""SQLite implementations of profile and pending-user repositories."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import aiosqlite


class SqliteProfileRepository:
    """Application-level user identities."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_id(self, profile_id: str) -> dict | None:
        async with self.db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO profiles (
                id, email, full_name, avatar_url, role, sector_id, subsector_id,
                is_approved, approved_by, approved_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                data["id"],
                data.get("email", ""),
                data.get("full_name", ""),
                data.get("avatar_url"),
                data.get("role", "collaborator"),
                data.get("sector_id"),
                data.get("subsector_id"),
                1 if data.get("is_approved") else 0,
                data.get("approved_by"),
                data.get("approved_at"),
                data.get("created_at", now),
                now,
            ),
        )
        await self.db.commit()
        return await self.get_by_id(data["id"]) or {}

    async def list_by_sector(self, sector_id: str) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM profiles WHERE sector_id = ? ORDER BY full_name",
            (sector_id,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def delete(self, profile_id: str) -> bool:
        cur = await self.db.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        await self.db.commit()
        return cur.rowcount > 0


class SqlitePendingUserRepository:
    """Registration records awaiting a manager decision."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_id(self, pending_id: str) -> dict | None:
        async with self.db.execute("SELECT * FROM pending_users WHERE id = ?", (pending_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO pending_users (
                id, email, full_name, sector_id, subsector_id, status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                data["id"],
                data["email"],
                data.get("full_name", ""),
                data.get("sector_id"),
                data.get("subsector_id"),
                data.get("status", "pending"),
                data.get("created_at", now),
                now,
            ),
        )
        await self.db.commit()
        return await self.get_by_id(data["id"]) or {}

    async def list_pending(self) -> list[dict]:
        async with self.db.execute(
            """SELECT pu.*, s.name AS sector_name, ss.name AS subsector_name
            FROM pending_users pu
            LEFT JOIN sectors s ON s.id = pu.sector_id
            LEFT JOIN subsectors ss ON ss.id = pu.subsector_id
            WHERE pu.status = 'pending'
            ORDER BY pu.created_at DESC""",
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def set_status(self, pending_id: str, status: str) -> bool:
        cur = await self.db.execute(
            "UPDATE pending_users SET status = ?, updated_at = ? WHERE id = ?",
            (status, datetime.now(timezone.utc).isoformat(), pending_id),
        )
        await self.db.commit()
        return cur.rowcount > 0

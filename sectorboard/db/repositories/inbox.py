"""SQLite implementations of notification and invitation repositories."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite


class SqliteNotificationRepository:
    """Per-user in-app notifications."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, data: dict[str, Any]) -> dict:
        notification_id = data.get("id") or str(uuid.uuid4())
        created_at = data.get("created_at") or datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO notifications (
                id, user_id, title, message, type, read, related_activity_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                notification_id,
                data["user_id"],
                data.get("title", ""),
                data.get("message", ""),
                data.get("type", "info"),
                1 if data.get("read") else 0,
                data.get("related_activity_id"),
                created_at,
            ),
        )
        await self.db.commit()
        return {**data, "id": notification_id, "created_at": created_at}

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        cur = await self.db.execute(
            "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )
        await self.db.commit()
        return cur.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        cur = await self.db.execute(
            "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0", (user_id,)
        )
        await self.db.commit()
        return cur.rowcount


class SqliteInvitationRepository:
    """Sector invitations created by managers."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_id(self, invitation_id: str) -> dict | None:
        async with self.db.execute("SELECT * FROM invitations WHERE id = ?", (invitation_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        invitation_id = data.get("id") or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO invitations (
                id, email, token, role, sector_id, subsector_id, invited_by,
                expires_at, used_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                invitation_id,
                data["email"],
                data["token"],
                data.get("role", "collaborator"),
                data["sector_id"],
                data.get("subsector_id"),
                data["invited_by"],
                data["expires_at"],
                data.get("used_at"),
                data.get("created_at", now),
            ),
        )
        await self.db.commit()
        return await self.get_by_id(invitation_id) or {}

    async def list_for_sector(self, sector_id: str) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM invitations WHERE sector_id = ? ORDER BY created_at DESC",
            (sector_id,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def delete(self, invitation_id: str) -> bool:
        cur = await self.db.execute("DELETE FROM invitations WHERE id = ?", (invitation_id,))
        await self.db.commit()
        return cur.rowcount > 0

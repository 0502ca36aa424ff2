"""PostgreSQL implementations of notification and invitation repositories."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import asyncpg

from sectorboard.db.repositories.postgres.activities import _affected


class PostgresNotificationRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def create(self, data: dict[str, Any]) -> dict:
        notification_id = data.get("id") or str(uuid.uuid4())
        created_at = data.get("created_at") or datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """
            INSERT INTO notifications (
                id, user_id, title, message, type, read, related_activity_id, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            notification_id,
            data["user_id"],
            data.get("title", ""),
            data.get("message", ""),
            data.get("type", "info"),
            bool(data.get("read")),
            data.get("related_activity_id"),
            created_at,
        )
        return {**data, "id": notification_id, "created_at": created_at}

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM notifications WHERE user_id = $1 ORDER BY created_at DESC LIMIT $2",
            user_id, limit,
        )
        return [dict(r) for r in rows]

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        status = await self.db.execute(
            "UPDATE notifications SET read = TRUE WHERE id = $1 AND user_id = $2",
            notification_id, user_id,
        )
        return _affected(status) > 0

    async def mark_all_read(self, user_id: str) -> int:
        status = await self.db.execute(
            "UPDATE notifications SET read = TRUE WHERE user_id = $1 AND read = FALSE", user_id
        )
        return _affected(status)


class PostgresInvitationRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_by_id(self, invitation_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM invitations WHERE id = $1", invitation_id)
        return dict(row) if row else None

    async def create(self, data: dict[str, Any]) -> dict:
        invitation_id = data.get("id") or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """
            INSERT INTO invitations (
                id, email, token, role, sector_id, subsector_id, invited_by,
                expires_at, used_at, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            """,
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
        )
        return await self.get_by_id(invitation_id) or {}

    async def list_for_sector(self, sector_id: str) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM invitations WHERE sector_id = $1 ORDER BY created_at DESC", sector_id
        )
        return [dict(r) for r in rows]

    async def delete(self, invitation_id: str) -> bool:
        status = await self.db.execute("DELETE FROM invitations WHERE id = $1", invitation_id)
        return _affected(status) > 0

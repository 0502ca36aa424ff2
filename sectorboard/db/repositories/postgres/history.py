"""PostgreSQL implementation of ActivityHistoryRepository (append-only)."""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import asyncpg

from sectorboard.db.queries import Params
from sectorboard.db.repositories.history import build_history_where

_HISTORY_SELECT = """
    SELECT h.*, p.full_name AS performer_name
    FROM activity_history h
    LEFT JOIN profiles p ON p.id = h.performed_by
"""


class PostgresActivityHistoryRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def append(self, entry: dict[str, Any]) -> dict:
        entry_id = entry.get("id") or str(uuid.uuid4())
        created_at = entry.get("created_at") or datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """
            INSERT INTO activity_history (
                id, activity_id, action, old_status, new_status, performed_by,
                activity_title, activity_description, subsector_id, sector_id,
                details_json, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            """,
            entry_id,
            entry["activity_id"],
            entry["action"],
            entry.get("old_status"),
            entry.get("new_status"),
            entry["performed_by"],
            entry.get("activity_title", ""),
            entry.get("activity_description"),
            entry.get("subsector_id"),
            entry["sector_id"],
            json.dumps(entry.get("details") or {}),
            created_at,
        )
        return {**entry, "id": entry_id, "created_at": created_at}

    async def list(self, filters: dict[str, Any], limit: int | None = None) -> list[dict]:
        params = Params("numeric")
        sql = f"{_HISTORY_SELECT} WHERE {build_history_where(filters, params)} ORDER BY h.created_at DESC"
        if limit:
            sql += f" LIMIT {params.add(int(limit))}"
        rows = await self.db.fetch(sql, *params.values)
        return [dict(r) for r in rows]

"""SQLite implementation of ActivityHistoryRepository (append-only)."""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from sectorboard.db.queries import Params

_HISTORY_SELECT = """
    SELECT h.*, p.full_name AS performer_name
    FROM activity_history h
    LEFT JOIN profiles p ON p.id = h.performed_by
"""


def build_history_where(filters: dict[str, Any], params: Params) -> str:
    clauses = [f"h.sector_id = {params.add(filters['sector_id'])}"]
    for key in ("activity_id", "subsector_id"):
        if filters.get(key):
            clauses.append(f"h.{key} = {params.add(filters[key])}")
    if filters.get("date_from"):
        clauses.append(f"h.created_at >= {params.add(filters['date_from'])}")
    if filters.get("date_to"):
        clauses.append(f"h.created_at < {params.add(filters['date_to'])}")
    return " AND ".join(clauses)


class SqliteActivityHistoryRepository:
    """Activity history log. Entries are never updated or deleted."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def append(self, entry: dict[str, Any]) -> dict:
        entry_id = entry.get("id") or str(uuid.uuid4())
        created_at = entry.get("created_at") or datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO activity_history (
                id, activity_id, action, old_status, new_status, performed_by,
                activity_title, activity_description, subsector_id, sector_id,
                details_json, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
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
            ),
        )
        await self.db.commit()
        return {**entry, "id": entry_id, "created_at": created_at}

    async def list(self, filters: dict[str, Any], limit: int | None = None) -> list[dict]:
        params = Params("qmark")
        sql = f"{_HISTORY_SELECT} WHERE {build_history_where(filters, params)} ORDER BY h.created_at DESC"
        if limit:
            sql += f" LIMIT {params.add(int(limit))}"
        async with self.db.execute(sql, params.values) as cur:
            return [dict(r) for r in await cur.fetchall()]

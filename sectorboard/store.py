"""Normalized in-memory store shared by all services.

Rows are kept once per (table, id). Services hold ordered id lists and
project rows out of the store, so a patch applied by one service is seen by
every other projection of the same row.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Optional


class EntityStore:
    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Any]] = defaultdict(dict)

    def upsert(self, table: str, row: Any) -> str:
        self._tables[table][row.id] = row
        return row.id

    def upsert_many(self, table: str, rows: Iterable[Any]) -> list[str]:
        return [self.upsert(table, row) for row in rows]

    def get(self, table: str, row_id: str) -> Optional[Any]:
        return self._tables[table].get(row_id)

    def remove(self, table: str, row_id: str) -> Optional[Any]:
        return self._tables[table].pop(row_id, None)

    def project(self, table: str, row_ids: Iterable[str]) -> list[Any]:
        rows = self._tables[table]
        return [rows[row_id] for row_id in row_ids if row_id in rows]

    def count(self, table: str) -> int:
        return len(self._tables[table])

    def clear(self, table: str | None = None) -> None:
        if table is None:
            self._tables.clear()
        else:
            self._tables.pop(table, None)

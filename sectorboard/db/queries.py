"""Shared SQL fragments for the SQLite and Postgres repositories.

Placeholders differ between the two drivers (``?`` vs ``$n``), so the
builders take a ``Params`` collector that renders the right marker.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

ACTIVITY_COLUMNS = (
    "id", "title", "description", "status", "priority", "due_date",
    "estimated_time", "user_id", "created_by", "sector_id", "subsector_id",
    "list_id", "is_private", "completed_at", "created_at", "updated_at",
)
ACTIVITY_PATCHABLE = frozenset(ACTIVITY_COLUMNS) - {"id", "created_by", "sector_id", "created_at"}

ACTIVITY_SELECT = """
    SELECT a.*,
           p.full_name  AS creator_full_name,
           p.avatar_url AS creator_avatar_url,
           s.name       AS subsector_name
    FROM activities a
    LEFT JOIN profiles p ON p.id = a.created_by
    LEFT JOIN subsectors s ON s.id = a.subsector_id
"""


class Params:
    """Collects bind values and renders driver-specific placeholders."""

    def __init__(self, style: str = "qmark"):
        self.style = style
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        if self.style == "numeric":
            return f"${len(self.values)}"
        return "?"

    def add_many(self, values: Iterable[Any]) -> str:
        return ", ".join(self.add(v) for v in values)


@dataclass(frozen=True)
class ActivityQuery:
    """Role-scoped activity filter.

    ``member_subsector_ids`` are the collaborator's subsectors (membership
    table, or the profile's own subsector as fallback). Managers ignore them.
    """
    sector_id: str
    viewer_id: str
    viewer_role: str = "collaborator"
    member_subsector_ids: tuple[str, ...] = ()
    subsector_id: str | None = None
    user_id: str | None = None
    list_id: str | None = None
    statuses: tuple[str, ...] = ()
    include_archived: bool = False
    text: str | None = None
    limit: int | None = None


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_activity_where(query: ActivityQuery, params: Params) -> str:
    clauses = [f"a.sector_id = {params.add(query.sector_id)}"]

    # Private activities are only ever visible to their creator.
    clauses.append(f"(NOT a.is_private OR a.created_by = {params.add(query.viewer_id)})")

    if query.viewer_role != "manager":
        if query.member_subsector_ids:
            clauses.append(
                f"(a.subsector_id IN ({params.add_many(query.member_subsector_ids)}) "
                f"OR a.created_by = {params.add(query.viewer_id)})"
            )
        else:
            clauses.append(f"a.created_by = {params.add(query.viewer_id)}")

    if query.subsector_id:
        clauses.append(f"a.subsector_id = {params.add(query.subsector_id)}")
    if query.user_id:
        clauses.append(f"a.user_id = {params.add(query.user_id)}")
    if query.list_id:
        clauses.append(f"a.list_id = {params.add(query.list_id)}")

    if query.statuses:
        clauses.append(f"a.status IN ({params.add_many(query.statuses)})")
    elif not query.include_archived:
        clauses.append(f"a.status != {params.add('archived')}")

    if query.text:
        pattern = f"%{_escape_like(query.text.strip().lower())}%"
        clauses.append(
            f"(LOWER(a.title) LIKE {params.add(pattern)} ESCAPE '\\' "
            f"OR LOWER(COALESCE(a.description, '')) LIKE {params.add(pattern)} ESCAPE '\\')"
        )

    return " AND ".join(clauses)


def build_activity_select(query: ActivityQuery, params: Params) -> str:
    sql = f"{ACTIVITY_SELECT} WHERE {build_activity_where(query, params)} ORDER BY a.created_at DESC, a.id DESC"
    if query.limit:
        sql += f" LIMIT {params.add(int(query.limit))}"
    return sql


def build_patch(patch: dict[str, Any], allowed: frozenset[str], params: Params) -> str:
    columns = [key for key in patch if key in allowed]
    return ", ".join(f"{column} = {params.add(patch[column])}" for column in columns)

"""Activity history: append helper, filtered fetch and readable descriptions."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from sectorboard.db.factory import get_history_repository
from sectorboard.models import ActivityHistoryEntry
from sectorboard.observability import record_refetch, start_span
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.history")

_STATUS_TEXT = {
    "pending": "Pending",
    "in_progress": "In progress",
    "completed": "Completed",
    "archived": "Archived",
}

# (activity column, details flag, label)
_TRACKED_FIELDS = (
    ("title", "title_changed", "title"),
    ("description", "description_changed", "description"),
    ("priority", "priority_changed", "priority"),
    ("due_date", "due_date_changed", "due date"),
    ("user_id", "assigned_to_changed", "assignee"),
)


def status_text(status: Optional[str]) -> str:
    return _STATUS_TEXT.get(status or "", "Unknown")


def change_flags(before: dict[str, Any], patch: dict[str, Any]) -> dict[str, bool]:
    """Which tracked fields a patch actually changes."""
    return {
        flag: column in patch and patch[column] != before.get(column)
        for column, flag, _ in _TRACKED_FIELDS
    }


def describe(entry: ActivityHistoryEntry) -> str:
    performer = entry.performer_name or "Unknown user"
    if entry.action == "created":
        return f"{performer} created the activity"
    if entry.action == "status_changed":
        return (
            f'{performer} changed the status from "{status_text(entry.old_status)}" '
            f'to "{status_text(entry.new_status)}"'
        )
    if entry.action == "archived":
        return f"{performer} archived the activity"
    if entry.action == "unarchived":
        return f"{performer} unarchived the activity"
    if entry.action == "deleted":
        return f"{performer} deleted the activity"
    if entry.action == "updated":
        changes = entry.details.get("changes") if isinstance(entry.details, dict) else None
        if isinstance(changes, dict):
            labels = [label for _, flag, label in _TRACKED_FIELDS if changes.get(flag)]
            if labels:
                return f"{performer} updated {', '.join(labels)}"
        return f"{performer} updated the activity"
    return f"{performer} performed an action"


def _parse_details(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
        return parsed if isinstance(parsed, dict) else {}
    except (TypeError, ValueError):
        return {}


def row_to_entry(row: dict[str, Any]) -> ActivityHistoryEntry:
    data = dict(row)
    data["details"] = _parse_details(data.pop("details_json", None) or data.get("details"))
    return ActivityHistoryEntry(**data)


async def record_history(
    db: Any,
    *,
    action: str,
    activity: dict[str, Any],
    performed_by: str,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> Optional[dict]:
    """Append one history entry. A failed append never undoes the mutation it records."""
    try:
        return await get_history_repository(db).append({
            "activity_id": activity["id"],
            "action": action,
            "old_status": old_status,
            "new_status": new_status,
            "performed_by": performed_by,
            "activity_title": activity.get("title") or "",
            "activity_description": activity.get("description"),
            "subsector_id": activity.get("subsector_id"),
            "sector_id": activity["sector_id"],
            "details": details or {},
        })
    except Exception as e:
        logger.warning(f"History entry '{action}' for activity {activity.get('id')} not recorded: {e}")
        return None


def _day_start(value: str) -> str:
    return date.fromisoformat(value[:10]).isoformat() + "T00:00:00"


def _day_after(value: str) -> str:
    return (date.fromisoformat(value[:10]) + timedelta(days=1)).isoformat()


@dataclass(frozen=True)
class HistoryFilters:
    activity_id: Optional[str] = None
    subsector_id: Optional[str] = None
    date_from: Optional[str] = None  # YYYY-MM-DD, inclusive
    date_to: Optional[str] = None    # YYYY-MM-DD, inclusive
    limit: Optional[int] = None


class ActivityHistoryService(BaseService):
    entity = "activity_history"

    def __init__(self, ctx: ServiceContext, name: str = "history"):
        super().__init__(ctx)
        self.name = name
        self.filters = HistoryFilters()
        self.entries: list[ActivityHistoryEntry] = []

    async def set_filters(self, filters: HistoryFilters) -> list[ActivityHistoryEntry]:
        self.filters = filters
        return await self.refetch()

    def _repo_filters(self, sector_id: str) -> dict[str, Any]:
        profile = self.ctx.session.profile
        filters: dict[str, Any] = {"sector_id": sector_id}
        if profile and profile.role == "collaborator" and profile.subsector_id:
            filters["subsector_id"] = profile.subsector_id
        if self.filters.activity_id:
            filters["activity_id"] = self.filters.activity_id
        if self.filters.subsector_id and "subsector_id" not in filters:
            filters["subsector_id"] = self.filters.subsector_id
        if self.filters.date_from:
            filters["date_from"] = _day_start(self.filters.date_from)
        if self.filters.date_to:
            filters["date_to"] = _day_after(self.filters.date_to)
        return filters

    async def refetch(self) -> list[ActivityHistoryEntry]:
        profile = self.ctx.session.profile
        if profile is None or not profile.sector_id:
            self.entries = []
            self.loading = False
            return self.entries

        sector_id = profile.sector_id
        self._subscribe(f"{self.name}:history:{sector_id}", ("activities",), sector_id)
        generation = self._begin_fetch()
        self.error = None
        started = time.monotonic()
        try:
            with start_span("history.refetch", {"sector_id": sector_id}):
                rows = await get_history_repository(self.ctx.db).list(
                    self._repo_filters(sector_id), self.filters.limit
                )
        except Exception as e:
            record_refetch("activity_history", "error", (time.monotonic() - started) * 1000, sector_id=sector_id)
            if self._is_current(generation):
                self._query_failed("Could not load activity history", e)
                self.loading = False
            return self.entries

        record_refetch("activity_history", "success", (time.monotonic() - started) * 1000, sector_id=sector_id)
        if not self._is_current(generation):
            return self.entries
        self.entries = [row_to_entry(r) for r in rows]
        self.loading = False
        return self.entries

    def describe(self, entry: ActivityHistoryEntry) -> str:
        return describe(entry)

"""Activity board service: role-scoped fetch, mutations and realtime refresh."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sectorboard.db.factory import (
    get_activity_repository,
    get_assignee_repository,
    get_subsector_membership_repository,
    get_subtask_repository,
)
from sectorboard.db.queries import ActivityQuery
from sectorboard.errors import AuthError, MutationError
from sectorboard.models import (
    Activity,
    ActivityCreate,
    ActivityPatch,
    PersonSummary,
    Profile,
    Subtask,
)
from sectorboard.observability import record_refetch, start_span
from sectorboard.services.base import BaseService, ServiceContext
from sectorboard.services.history import change_flags, record_history

logger = logging.getLogger("sectorboard.activities")

ACTIVITY_TABLES = ("activities", "subtasks")


@dataclass(frozen=True)
class ActivityScope:
    sector_id: str
    subsector_id: Optional[str] = None
    user_id: Optional[str] = None
    statuses: tuple[str, ...] = ()
    include_archived: bool = False


def apply_completion_rule(patch: dict[str, Any]) -> dict[str, Any]:
    """Keep ``completed_at`` in step with ``status``.

    Evaluated only when the patch carries a status: completed stamps the
    current time unless a timestamp was supplied, any other status clears it.
    """
    if patch.get("status") is None:
        return patch
    result = dict(patch)
    if result["status"] == "completed":
        if not result.get("completed_at"):
            result["completed_at"] = datetime.now(timezone.utc).isoformat()
    else:
        result["completed_at"] = None
    return result


async def member_subsector_ids(db: Any, profile: Profile) -> tuple[str, ...]:
    """Subsectors a collaborator works in; the profile's own subsector if no memberships exist."""
    ids = await get_subsector_membership_repository(db).list_ids(profile.id)
    if not ids and profile.subsector_id:
        ids = [profile.subsector_id]
    return tuple(ids)


async def viewer_query(db: Any, profile: Profile, sector_id: str, **filters: Any) -> ActivityQuery:
    members: tuple[str, ...] = ()
    if profile.role != "manager":
        members = await member_subsector_ids(db, profile)
    return ActivityQuery(
        sector_id=sector_id,
        viewer_id=profile.id,
        viewer_role=profile.role,
        member_subsector_ids=members,
        **filters,
    )


def check_access(row: dict[str, Any], profile: Profile) -> None:
    """Raise unless the activity row is in the profile's sector and not someone else's private item."""
    if row.get("sector_id") != profile.sector_id:
        raise MutationError(f"activity {row.get('id')} is outside sector {profile.sector_id}")
    if row.get("is_private") and row.get("created_by") != profile.id:
        raise MutationError(f"activity {row.get('id')} is private to its creator")


def row_to_activity(
    row: dict[str, Any],
    subtasks: Optional[list[dict]] = None,
    assignee_ids: Optional[list[str]] = None,
) -> Activity:
    data = dict(row)
    full_name = data.pop("creator_full_name", None)
    avatar_url = data.pop("creator_avatar_url", None)
    data["is_private"] = bool(data.get("is_private"))
    if full_name is not None or avatar_url is not None:
        data["creator"] = PersonSummary(full_name=full_name or "", avatar_url=avatar_url)
    data["subtasks"] = [Subtask(**{**s, "is_completed": bool(s.get("is_completed"))}) for s in subtasks or []]
    data["assignee_ids"] = list(assignee_ids or [])
    return Activity(**data)


class ActivityService(BaseService):
    """The canonical activity entity hook.

    Holds an ordered list of ids; rows live in the shared ``EntityStore`` so a
    patch applied here is visible to every other projection of the same row.
    """

    entity = "activities"

    def __init__(self, ctx: ServiceContext, name: str = "board"):
        super().__init__(ctx)
        self.name = name
        self.scope: Optional[ActivityScope] = None
        self._ids: list[str] = []

    @property
    def activities(self) -> list[Activity]:
        return self.ctx.store.project("activities", self._ids)

    async def set_scope(self, scope: ActivityScope) -> list[Activity]:
        if scope == self.scope and self._generation:
            return self.activities
        self.scope = scope
        self._subscribe(f"{self.name}:activities:{scope.sector_id}", ACTIVITY_TABLES, scope.sector_id)
        return await self.refetch()

    async def refetch(self) -> list[Activity]:
        scope = self.scope
        profile = self.ctx.session.profile
        if scope is None or profile is None:
            self._ids = []
            self.loading = False
            return []

        generation = self._begin_fetch()
        started = time.monotonic()
        try:
            with start_span("activities.refetch", {"sector_id": scope.sector_id, "role": profile.role}):
                query = await viewer_query(
                    self.ctx.db,
                    profile,
                    scope.sector_id,
                    subsector_id=scope.subsector_id,
                    user_id=scope.user_id,
                    statuses=tuple(scope.statuses),
                    include_archived=scope.include_archived,
                )
                rows = await get_activity_repository(self.ctx.db).list_visible(query)
                ids = [r["id"] for r in rows]
                subtask_rows = await get_subtask_repository(self.ctx.db).list_for_activities(ids)
                assignees = await get_assignee_repository(self.ctx.db).list_for_activities(ids)
        except Exception as e:
            record_refetch("activities", "error", (time.monotonic() - started) * 1000, sector_id=scope.sector_id)
            if self._is_current(generation):
                self._query_failed("Could not load activities", e)
                self.loading = False
            return self.activities

        record_refetch("activities", "success", (time.monotonic() - started) * 1000, sector_id=scope.sector_id)
        if not self._is_current(generation):
            logger.debug(f"Discarding stale activity fetch for {self.name}")
            return self.activities

        by_activity: dict[str, list[dict]] = {}
        for s in subtask_rows:
            by_activity.setdefault(s["activity_id"], []).append(s)
        for row in rows:
            self.ctx.store.upsert(
                "activities",
                row_to_activity(row, by_activity.get(row["id"]), assignees.get(row["id"])),
            )
        self._ids = ids
        self.error = None
        self.loading = False
        return self.activities

    # ── Local state patching ──────────────────────────────────────

    def _in_scope(self, activity: Activity) -> bool:
        scope = self.scope
        if scope is None or activity.sector_id != scope.sector_id:
            return False
        if scope.subsector_id and activity.subsector_id != scope.subsector_id:
            return False
        if scope.user_id and activity.user_id != scope.user_id:
            return False
        if scope.statuses:
            return activity.status in scope.statuses
        return scope.include_archived or activity.status != "archived"

    def _apply_local(self, activity: Activity, *, prepend: bool = False) -> None:
        previous = self.ctx.store.get("activities", activity.id)
        if previous is not None:
            activity = activity.model_copy(update={"subtasks": previous.subtasks, "assignee_ids": previous.assignee_ids})
        self.ctx.store.upsert("activities", activity)
        if not self._in_scope(activity):
            self._ids = [i for i in self._ids if i != activity.id]
        elif activity.id not in self._ids:
            self._ids = [activity.id, *self._ids] if prepend else [*self._ids, activity.id]

    # ── Mutations ─────────────────────────────────────────────────

    async def create(self, data: ActivityCreate) -> Optional[Activity]:
        try:
            profile, sector_id = self.ctx.session.require_sector()
        except AuthError as e:
            self._mutation_failed("create", "Could not create activity", e)
            return None

        payload = data.model_dump()
        payload["priority"] = payload.get("priority") or "medium"
        payload["status"] = payload.get("status") or "pending"
        payload["user_id"] = payload.get("user_id") or profile.id
        payload["created_by"] = profile.id
        payload["sector_id"] = sector_id
        payload = apply_completion_rule(payload)

        try:
            row = await get_activity_repository(self.ctx.db).create(payload)
        except Exception as e:
            self._mutation_failed("create", "Could not create activity", e)
            return None

        await record_history(self.ctx.db, action="created", activity=row, performed_by=profile.id,
                             new_status=row.get("status"))
        activity = row_to_activity(row, assignee_ids=[])
        self._apply_local(activity, prepend=True)
        self._publish("activities", "INSERT", activity.id, sector_id)
        self._mutation_succeeded("create")
        return activity

    async def update(self, activity_id: str, patch: ActivityPatch | dict[str, Any]) -> Optional[Activity]:
        values = patch.model_dump(exclude_unset=True) if isinstance(patch, ActivityPatch) else dict(patch)
        if "status" in values and values["status"] is None:
            del values["status"]
        return await self._update(activity_id, values, action="update", title="Could not update activity")

    async def update_status(self, activity_id: str, status: str) -> Optional[Activity]:
        return await self._update(activity_id, {"status": status}, action="update_status",
                                  title="Could not change activity status")

    async def archive(self, activity_id: str) -> Optional[Activity]:
        return await self._update(activity_id, {"status": "archived"}, action="archive",
                                  title="Could not archive activity")

    async def unarchive(self, activity_id: str) -> Optional[Activity]:
        return await self._update(activity_id, {"status": "pending"}, action="unarchive",
                                  title="Could not unarchive activity")

    async def _update(self, activity_id: str, values: dict[str, Any], *, action: str, title: str) -> Optional[Activity]:
        try:
            profile = self.ctx.session.require_profile()
        except AuthError as e:
            self._mutation_failed(action, title, e)
            return None

        values = apply_completion_rule(values)
        repo = get_activity_repository(self.ctx.db)
        try:
            before = await repo.get_by_id(activity_id)
            if before is None:
                raise LookupError(f"activity {activity_id} not found")
            check_access(before, profile)
            row = await repo.update(activity_id, values)
            if row is None:
                raise LookupError(f"activity {activity_id} vanished during update")
        except Exception as e:
            self._mutation_failed(action, title, e)
            return None

        await self._record_update(before, row, values, profile.id)
        activity = row_to_activity(row)
        self._apply_local(activity)
        self._publish("activities", "UPDATE", activity.id, activity.sector_id)
        self._mutation_succeeded(action)
        return activity

    async def _record_update(self, before: dict, row: dict, values: dict[str, Any], performed_by: str) -> None:
        old_status, new_status = before.get("status"), row.get("status")
        if "status" in values and old_status != new_status:
            if new_status == "archived":
                kind = "archived"
            elif old_status == "archived":
                kind = "unarchived"
            else:
                kind = "status_changed"
            await record_history(self.ctx.db, action=kind, activity=row, performed_by=performed_by,
                                 old_status=old_status, new_status=new_status)
        flags = change_flags(before, values)
        if any(flags.values()):
            await record_history(self.ctx.db, action="updated", activity=row, performed_by=performed_by,
                                 details={"changes": flags})

    async def delete(self, activity_id: str) -> bool:
        """Hard delete. Subtasks and history rows of the activity are left in place."""
        try:
            profile = self.ctx.session.require_profile()
        except AuthError as e:
            self._mutation_failed("delete", "Could not delete activity", e)
            return False

        repo = get_activity_repository(self.ctx.db)
        try:
            before = await repo.get_by_id(activity_id)
            if before is None:
                raise LookupError(f"activity {activity_id} not found")
            check_access(before, profile)
            if not await repo.delete(activity_id):
                raise LookupError(f"activity {activity_id} not found")
        except Exception as e:
            self._mutation_failed("delete", "Could not delete activity", e)
            return False

        await record_history(self.ctx.db, action="deleted", activity=before, performed_by=profile.id,
                             old_status=before.get("status"))
        self.ctx.store.remove("activities", activity_id)
        self._ids = [i for i in self._ids if i != activity_id]
        self._publish("activities", "DELETE", activity_id, before.get("sector_id"))
        self._mutation_succeeded("delete")
        return True

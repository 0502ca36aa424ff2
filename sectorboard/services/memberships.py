"""Activity assignees and collaborator subsector memberships.

Both relations are written with replace-all semantics: the caller sends the
complete new set of ids.
"""
from __future__ import annotations

import logging
from typing import Iterable

from sectorboard.db.factory import (
    get_activity_repository,
    get_assignee_repository,
    get_subsector_membership_repository,
)
from sectorboard.services.base import BaseService

logger = logging.getLogger("sectorboard.memberships")


def _unique(ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in ids:
        if value:
            seen.setdefault(value, None)
    return list(seen)


class AssigneeService(BaseService):
    entity = "activity_assignees"

    async def refetch(self) -> None:
        return None

    async def list_ids(self, activity_id: str) -> list[str]:
        try:
            return await get_assignee_repository(self.ctx.db).list_ids(activity_id)
        except Exception as e:
            self._query_failed("Could not load assignees", e)
            return []

    async def replace(self, activity_id: str, user_ids: Iterable[str]) -> bool:
        ids = _unique(user_ids)
        try:
            activity = await get_activity_repository(self.ctx.db).get_by_id(activity_id)
            if activity is None:
                raise LookupError(f"activity {activity_id} not found")
            await get_assignee_repository(self.ctx.db).replace(activity_id, ids)
        except Exception as e:
            self._mutation_failed("replace", "Could not update assignees", e)
            return False

        cached = self.ctx.store.get("activities", activity_id)
        if cached is not None:
            self.ctx.store.upsert("activities", cached.model_copy(update={"assignee_ids": ids}))
        self._publish("activities", "UPDATE", activity_id, activity.get("sector_id"))
        self._mutation_succeeded("replace")
        return True


class SubsectorMembershipService(BaseService):
    entity = "profile_subsectors"

    async def refetch(self) -> None:
        return None

    async def list_ids(self, profile_id: str) -> list[str]:
        try:
            return await get_subsector_membership_repository(self.ctx.db).list_ids(profile_id)
        except Exception as e:
            self._query_failed("Could not load subsectors", e)
            return []

    async def replace(self, profile_id: str, subsector_ids: Iterable[str]) -> bool:
        if not self.ctx.session.is_manager:
            self.ctx.notifier.error("Could not update subsectors", "Only managers can change memberships.")
            return False
        ids = _unique(subsector_ids)
        try:
            await get_subsector_membership_repository(self.ctx.db).replace(profile_id, ids)
        except Exception as e:
            self._mutation_failed("replace", "Could not update subsectors", e)
            return False
        # Visibility of every activity board depends on memberships.
        self._publish("activities", "UPDATE", None, self._sector_label())
        self._mutation_succeeded("replace")
        return True

"""Owner-scoped personal lists of activities."""
from __future__ import annotations

import logging
import time
from typing import Optional

from sectorboard.db.factory import get_activity_repository, get_personal_list_repository
from sectorboard.errors import AuthError
from sectorboard.models import Activity, PersonalList
from sectorboard.observability import record_refetch
from sectorboard.services.activities import row_to_activity
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.lists")


class PersonalListService(BaseService):
    entity = "personal_lists"

    def __init__(self, ctx: ServiceContext, name: str = "lists"):
        super().__init__(ctx)
        self.name = name
        self.lists: list[PersonalList] = []

    async def refetch(self) -> list[PersonalList]:
        profile = self.ctx.session.profile
        if profile is None:
            self.lists = []
            self.loading = False
            return self.lists

        self._subscribe(f"{self.name}:personal_lists:{profile.id}", ("personal_lists",), profile.sector_id)
        generation = self._begin_fetch()
        started = time.monotonic()
        try:
            rows = await get_personal_list_repository(self.ctx.db).list_for_user(profile.id)
        except Exception as e:
            record_refetch("personal_lists", "error", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
            if self._is_current(generation):
                self._query_failed("Could not load your lists", e)
                self.loading = False
            return self.lists

        record_refetch("personal_lists", "success", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
        if not self._is_current(generation):
            return self.lists
        self.lists = [PersonalList(**r) for r in rows]
        self.error = None
        self.loading = False
        return self.lists

    async def create(self, name: str) -> Optional[PersonalList]:
        try:
            profile, sector_id = self.ctx.session.require_sector()
            if not name.strip():
                raise ValueError("list name is empty")
            row = await get_personal_list_repository(self.ctx.db).create(profile.id, sector_id, name.strip())
        except Exception as e:
            self._mutation_failed("create", "Could not create list", e)
            return None
        created = PersonalList(**row)
        self.lists = [*self.lists, created]
        self._publish("personal_lists", "INSERT", created.id, sector_id)
        self._mutation_succeeded("create")
        return created

    async def rename(self, list_id: str, name: str) -> Optional[PersonalList]:
        repo = get_personal_list_repository(self.ctx.db)
        try:
            profile = self.ctx.session.require_profile()
            if not name.strip():
                raise ValueError("list name is empty")
            if not await repo.rename(list_id, profile.id, name.strip()):
                raise LookupError(f"list {list_id} not found for {profile.id}")
            row = await repo.get_by_id(list_id)
        except Exception as e:
            self._mutation_failed("rename", "Could not rename list", e)
            return None
        renamed = PersonalList(**row)
        self.lists = [renamed if item.id == list_id else item for item in self.lists]
        self._publish("personal_lists", "UPDATE", list_id, renamed.sector_id)
        self._mutation_succeeded("rename")
        return renamed

    async def delete(self, list_id: str) -> bool:
        try:
            profile = self.ctx.session.require_profile()
            if not await get_personal_list_repository(self.ctx.db).delete(list_id, profile.id):
                raise LookupError(f"list {list_id} not found for {profile.id}")
        except Exception as e:
            self._mutation_failed("delete", "Could not delete list", e)
            return False
        self.lists = [item for item in self.lists if item.id != list_id]
        self._publish("personal_lists", "DELETE", list_id, profile.sector_id)
        self._mutation_succeeded("delete")
        return True

    async def activities_in_list(self, list_id: str) -> list[Activity]:
        try:
            profile = self.ctx.session.require_profile()
        except AuthError:
            return []
        try:
            rows = await get_activity_repository(self.ctx.db).list_by_list(list_id, profile.id)
        except Exception as e:
            self._query_failed("Could not load list activities", e)
            return []
        return [row_to_activity(r) for r in rows]

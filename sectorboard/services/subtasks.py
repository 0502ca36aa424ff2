"""Ordered checklist items of one activity."""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

from sectorboard.db.factory import get_activity_repository, get_subtask_repository
from sectorboard.errors import NotFoundError
from sectorboard.models import Subtask
from sectorboard.observability import record_refetch
from sectorboard.services.activities import check_access
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.subtasks")


def row_to_subtask(row: dict[str, Any]) -> Subtask:
    return Subtask(**{**row, "is_completed": bool(row.get("is_completed"))})


class SubtaskService(BaseService):
    """Subtasks for the activity currently open in the view.

    Concurrent order-index writes are last-write-wins.
    """

    entity = "subtasks"

    def __init__(self, ctx: ServiceContext, name: str = "subtasks"):
        super().__init__(ctx)
        self.name = name
        self.activity_id: Optional[str] = None
        self._ids: list[str] = []

    @property
    def subtasks(self) -> list[Subtask]:
        return self.ctx.store.project("subtasks", self._ids)

    async def list_for_activity(self, activity_id: str) -> list[Subtask]:
        self.activity_id = activity_id
        profile = self.ctx.session.profile
        sector_id = profile.sector_id if profile else None
        self._subscribe(f"{self.name}:subtasks:{activity_id}", ("subtasks",), sector_id)
        return await self.refetch()

    async def refetch(self) -> list[Subtask]:
        activity_id = self.activity_id
        if activity_id is None:
            return []
        generation = self._begin_fetch()
        started = time.monotonic()
        try:
            rows = await get_subtask_repository(self.ctx.db).list_for_activity(activity_id)
        except Exception as e:
            record_refetch("subtasks", "error", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
            if self._is_current(generation):
                self._query_failed("Could not load subtasks", e)
                self.loading = False
            return self.subtasks

        record_refetch("subtasks", "success", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
        if not self._is_current(generation) or activity_id != self.activity_id:
            return self.subtasks
        self._ids = self.ctx.store.upsert_many("subtasks", [row_to_subtask(r) for r in rows])
        self.error = None
        self.loading = False
        self._sync_activity(activity_id)
        return self.subtasks

    # ── Local state ───────────────────────────────────────────────

    def _sync_activity(self, activity_id: str) -> None:
        """Mirror this activity's subtasks onto its row in the shared store."""
        activity = self.ctx.store.get("activities", activity_id)
        if activity is None or activity_id != self.activity_id:
            return
        self.ctx.store.upsert("activities", activity.model_copy(update={"subtasks": self.subtasks}))

    async def _sector_of(self, activity_id: str) -> Optional[str]:
        cached = self.ctx.store.get("activities", activity_id)
        if cached is not None:
            return cached.sector_id
        row = await get_activity_repository(self.ctx.db).get_by_id(activity_id)
        return row.get("sector_id") if row else None

    async def _changed(self, subtask: Subtask, event_type: str) -> None:
        if subtask.activity_id == self.activity_id:
            if event_type == "DELETE":
                self._ids = [i for i in self._ids if i != subtask.id]
            elif subtask.id not in self._ids:
                self._ids.append(subtask.id)
            self._ids.sort(key=lambda i: self.ctx.store.get("subtasks", i).order_index)
            self._sync_activity(subtask.activity_id)
        self._publish("subtasks", event_type, subtask.id, await self._sector_of(subtask.activity_id))

    # ── Mutations ─────────────────────────────────────────────────

    async def _check_parent(self, activity_id: str) -> None:
        profile = self.ctx.session.require_profile()
        parent = await get_activity_repository(self.ctx.db).get_by_id(activity_id)
        if parent is None:
            raise NotFoundError(f"activity {activity_id} not found")
        check_access(parent, profile)

    async def _load(self, subtask_id: str, activity_id: Optional[str]) -> dict[str, Any]:
        """Fetch a subtask the viewer may change; ``activity_id`` pins it to one parent."""
        row = await get_subtask_repository(self.ctx.db).get_by_id(subtask_id)
        if row is None or (activity_id is not None and row["activity_id"] != activity_id):
            raise NotFoundError(f"subtask {subtask_id} not found")
        await self._check_parent(row["activity_id"])
        return row

    async def add(
        self,
        activity_id: str,
        title: str,
        description: Optional[str] = None,
        checklist_group: Optional[str] = None,
    ) -> Optional[Subtask]:
        repo = get_subtask_repository(self.ctx.db)
        try:
            await self._check_parent(activity_id)
            current_max = await repo.max_order_index(activity_id)
            row = await repo.create({
                "activity_id": activity_id,
                "title": title,
                "description": description,
                "checklist_group": checklist_group,
                "is_completed": False,
                "order_index": 0 if current_max is None else current_max + 1,
            })
        except Exception as e:
            self._mutation_failed("add", "Could not add subtask", e)
            return None
        subtask = row_to_subtask(row)
        self.ctx.store.upsert("subtasks", subtask)
        await self._changed(subtask, "INSERT")
        self._mutation_succeeded("add")
        return subtask

    async def toggle(self, subtask_id: str, activity_id: Optional[str] = None) -> Optional[Subtask]:
        repo = get_subtask_repository(self.ctx.db)
        try:
            row = await self._load(subtask_id, activity_id)
            row = await repo.update(subtask_id, {"is_completed": not bool(row["is_completed"])})
            if row is None:
                raise NotFoundError(f"subtask {subtask_id} vanished during update")
        except Exception as e:
            self._mutation_failed("toggle", "Could not update subtask", e)
            return None
        subtask = row_to_subtask(row)
        self.ctx.store.upsert("subtasks", subtask)
        await self._changed(subtask, "UPDATE")
        self._mutation_succeeded("toggle")
        return subtask

    async def update(
        self,
        subtask_id: str,
        *,
        activity_id: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Subtask]:
        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = title
        if description is not None:
            patch["description"] = description
        try:
            await self._load(subtask_id, activity_id)
            row = await get_subtask_repository(self.ctx.db).update(subtask_id, patch)
            if row is None:
                raise NotFoundError(f"subtask {subtask_id} vanished during update")
        except Exception as e:
            self._mutation_failed("update", "Could not update subtask", e)
            return None
        subtask = row_to_subtask(row)
        self.ctx.store.upsert("subtasks", subtask)
        await self._changed(subtask, "UPDATE")
        self._mutation_succeeded("update")
        return subtask

    async def delete(self, subtask_id: str, activity_id: Optional[str] = None) -> bool:
        repo = get_subtask_repository(self.ctx.db)
        try:
            row = await self._load(subtask_id, activity_id)
            if not await repo.delete(subtask_id):
                raise NotFoundError(f"subtask {subtask_id} not found")
        except Exception as e:
            self._mutation_failed("delete", "Could not delete subtask", e)
            return False
        subtask = self.ctx.store.remove("subtasks", subtask_id) or row_to_subtask(row)
        await self._changed(subtask, "DELETE")
        self._mutation_succeeded("delete")
        return True

    async def reorder(self, activity_id: str, ordered_ids: list[str]) -> bool:
        """Rewrite order indexes to match ``ordered_ids`` (0..n-1).

        Every id must belong to ``activity_id``.
        """
        orders = [(subtask_id, index) for index, subtask_id in enumerate(ordered_ids)]
        repo = get_subtask_repository(self.ctx.db)
        try:
            await self._check_parent(activity_id)
            own = {r["id"] for r in await repo.list_for_activity(activity_id)}
            strays = [i for i in ordered_ids if i not in own]
            if strays:
                raise NotFoundError(f"subtasks {', '.join(strays)} not found under activity {activity_id}")
            await repo.set_order_indexes(orders)
        except Exception as e:
            self._mutation_failed("reorder", "Could not reorder subtasks", e)
            return False
        for subtask_id, index in orders:
            cached = self.ctx.store.get("subtasks", subtask_id)
            if cached is not None:
                self.ctx.store.upsert("subtasks", cached.model_copy(update={"order_index": index}))
        if activity_id == self.activity_id:
            self._ids.sort(key=lambda i: self.ctx.store.get("subtasks", i).order_index)
            self._sync_activity(activity_id)
        self._publish("subtasks", "UPDATE", None, await self._sector_of(activity_id))
        self._mutation_succeeded("reorder")
        return True

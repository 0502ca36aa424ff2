"""Manager approval of registered-but-unapproved users.

``pending -> approved`` creates the Profile first and only then marks the
record approved. When the profile insert fails the record stays pending; when
the status update fails after a successful insert the profile stands and the
record stays pending (a second approval attempt is then possible).
Only pending records can be approved or rejected; both outcomes are final.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from sectorboard.db.factory import get_pending_user_repository, get_profile_repository
from sectorboard.errors import AuthError
from sectorboard.models import PendingUser, Profile
from sectorboard.observability import record_refetch, start_span
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.approvals")


class PendingUserService(BaseService):
    entity = "pending_users"

    def __init__(self, ctx: ServiceContext, name: str = "approvals"):
        super().__init__(ctx)
        self.name = name
        self.pending: list[PendingUser] = []

    def _require_approver(self) -> Profile:
        if not self.ctx.session.is_approved_manager:
            raise AuthError("Only approved managers can review pending users")
        return self.ctx.session.require_profile()

    async def refetch(self) -> list[PendingUser]:
        if not self.ctx.session.is_approved_manager:
            self.pending = []
            self.loading = False
            return self.pending

        self._subscribe(f"{self.name}:pending_users", ("pending_users",), None)
        generation = self._begin_fetch()
        started = time.monotonic()
        try:
            with start_span("pending_users.refetch"):
                rows = await get_pending_user_repository(self.ctx.db).list_pending()
        except Exception as e:
            record_refetch("pending_users", "error", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
            if self._is_current(generation):
                self._query_failed("Could not load pending users", e)
                self.loading = False
            return self.pending

        record_refetch("pending_users", "success", (time.monotonic() - started) * 1000, sector_id=self._sector_label())
        if not self._is_current(generation):
            return self.pending
        self.pending = [PendingUser(**r) for r in rows]
        self.error = None
        self.loading = False
        return self.pending

    def _drop(self, pending_id: str) -> None:
        self.pending = [p for p in self.pending if p.id != pending_id]

    async def approve(self, pending_id: str) -> Optional[Profile]:
        try:
            approver = self._require_approver()
        except AuthError as e:
            self._mutation_failed("approve", "Could not approve user", e)
            return None

        pending_repo = get_pending_user_repository(self.ctx.db)
        try:
            record = await pending_repo.get_by_id(pending_id)
            if record is None or record.get("status") != "pending":
                raise LookupError(f"pending user {pending_id} is not awaiting approval")
            row = await get_profile_repository(self.ctx.db).create({
                "id": record["id"],
                "email": record["email"],
                "full_name": record.get("full_name") or "",
                "role": "collaborator",
                "sector_id": record.get("sector_id"),
                "subsector_id": record.get("subsector_id"),
                "is_approved": True,
                "approved_by": approver.id,
                "approved_at": datetime.now(timezone.utc).isoformat(),
            })
        except Exception as e:
            self._mutation_failed("approve", "Could not approve user", e)
            return None

        try:
            if not await pending_repo.set_status(pending_id, "approved"):
                logger.warning(f"Profile created for {pending_id} but no pending record was updated")
        except Exception as e:
            logger.warning(f"Profile created for {pending_id} but pending status not updated: {e}")

        profile = Profile(**{**row, "is_approved": bool(row.get("is_approved"))})
        self._drop(pending_id)
        self._publish("pending_users", "UPDATE", pending_id, record.get("sector_id"))
        self._mutation_succeeded("approve")
        self.ctx.notifier.success("User approved", f"{profile.full_name or profile.email} can now sign in.")
        return profile

    async def reject(self, pending_id: str) -> bool:
        try:
            self._require_approver()
        except AuthError as e:
            self._mutation_failed("reject", "Could not reject user", e)
            return False

        pending_repo = get_pending_user_repository(self.ctx.db)
        try:
            record = await pending_repo.get_by_id(pending_id)
            if record is None or record.get("status") != "pending":
                raise LookupError(f"pending user {pending_id} is not awaiting approval")
            if not await pending_repo.set_status(pending_id, "rejected"):
                raise LookupError(f"pending user {pending_id} not found")
        except Exception as e:
            self._mutation_failed("reject", "Could not reject user", e)
            return False

        self._drop(pending_id)
        self._publish("pending_users", "UPDATE", pending_id, record.get("sector_id"))
        self._mutation_succeeded("reject")
        self.ctx.notifier.success("User rejected")
        return True

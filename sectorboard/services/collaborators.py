"""Sector roster and manager-only user removal."""
from __future__ import annotations

import logging

from sectorboard.db.factory import get_profile_repository
from sectorboard.errors import AuthError
from sectorboard.functions import FunctionsClient
from sectorboard.models import Profile
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.collaborators")


class CollaboratorService(BaseService):
    entity = "profiles"

    def __init__(self, ctx: ServiceContext, functions: FunctionsClient):
        super().__init__(ctx)
        self.functions = functions
        self.members: list[Profile] = []

    async def refetch(self) -> list[Profile]:
        profile = self.ctx.session.profile
        if profile is None or not profile.sector_id:
            self.members = []
            return self.members
        generation = self._begin_fetch()
        try:
            rows = await get_profile_repository(self.ctx.db).list_by_sector(profile.sector_id)
        except Exception as e:
            if self._is_current(generation):
                self._query_failed("Could not load sector members", e)
                self.loading = False
            return self.members
        if self._is_current(generation):
            self.members = [Profile(**r) for r in rows]
            self.error = None
            self.loading = False
        return self.members

    async def delete_user(self, user_id: str) -> bool:
        """Remove a sector member through the privileged endpoint."""
        try:
            profile, sector_id = self.ctx.session.require_sector()
            if not self.ctx.session.is_manager:
                raise AuthError("Only managers can remove users")
            if user_id == profile.id:
                raise AuthError("Managers cannot remove themselves")
            target = await get_profile_repository(self.ctx.db).get_by_id(user_id)
            if target is None or target.get("sector_id") != sector_id:
                raise LookupError(f"user {user_id} is not in sector {sector_id}")
            await self.functions.delete_user(user_id, self.ctx.session.access_token)
        except Exception as e:
            self._mutation_failed("delete_user", "Could not remove user", e)
            return False

        self.members = [m for m in self.members if m.id != user_id]
        self._publish("activities", "UPDATE", None, sector_id)
        self._mutation_succeeded("delete_user")
        self.ctx.notifier.success("User removed", f"{target.get('full_name') or target.get('email')} no longer has access.")
        return True

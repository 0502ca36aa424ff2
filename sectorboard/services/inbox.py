"""Per-user in-app notifications."""
from __future__ import annotations

import logging

from sectorboard.db.factory import get_notification_repository
from sectorboard.models import Notification
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.inbox")


def _row(row: dict) -> Notification:
    return Notification(**{**row, "read": bool(row.get("read"))})


class NotificationInboxService(BaseService):
    entity = "notifications"

    def __init__(self, ctx: ServiceContext):
        super().__init__(ctx)
        self.notifications: list[Notification] = []

    async def refetch(self) -> list[Notification]:
        profile = self.ctx.session.profile
        if profile is None:
            self.notifications = []
            return self.notifications
        generation = self._begin_fetch()
        try:
            rows = await get_notification_repository(self.ctx.db).list_for_user(profile.id)
        except Exception as e:
            if self._is_current(generation):
                self._query_failed("Could not load notifications", e)
                self.loading = False
            return self.notifications
        if self._is_current(generation):
            self.notifications = [_row(r) for r in rows]
            self.error = None
            self.loading = False
        return self.notifications

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)

    async def mark_read(self, notification_id: str) -> bool:
        try:
            profile = self.ctx.session.require_profile()
            if not await get_notification_repository(self.ctx.db).mark_read(notification_id, profile.id):
                raise LookupError(f"notification {notification_id} not found")
        except Exception as e:
            self._mutation_failed("mark_read", "Could not update notification", e)
            return False
        self.notifications = [
            n.model_copy(update={"read": True}) if n.id == notification_id else n
            for n in self.notifications
        ]
        return True

    async def mark_all_read(self) -> int:
        try:
            profile = self.ctx.session.require_profile()
            count = await get_notification_repository(self.ctx.db).mark_all_read(profile.id)
        except Exception as e:
            self._mutation_failed("mark_all_read", "Could not update notifications", e)
            return 0
        self.notifications = [n.model_copy(update={"read": True}) for n in self.notifications]
        return count

"""The signed-in user's dashboard: session, shared store and every service."""
from __future__ import annotations

import logging
from typing import Any, Optional

from sectorboard.db.change_feed import ChangeFeed
from sectorboard.functions import FunctionsClient
from sectorboard.notifications import NotificationCenter
from sectorboard.realtime import RealtimeBridge
from sectorboard.search import ActivitySearch
from sectorboard.services.activities import ActivityScope, ActivityService
from sectorboard.services.base import ServiceContext
from sectorboard.services.collaborators import CollaboratorService
from sectorboard.services.history import ActivityHistoryService
from sectorboard.services.inbox import NotificationInboxService
from sectorboard.services.invitations import InvitationService
from sectorboard.services.memberships import AssigneeService, SubsectorMembershipService
from sectorboard.services.pending_users import PendingUserService
from sectorboard.services.personal_lists import PersonalListService
from sectorboard.services.subtasks import SubtaskService
from sectorboard.session import AuthClient, SessionBootstrapper, SessionStore
from sectorboard.store import EntityStore

logger = logging.getLogger("sectorboard")


class Dashboard:
    def __init__(
        self,
        db: Any,
        auth: AuthClient,
        feed: Optional[ChangeFeed] = None,
        functions: Optional[FunctionsClient] = None,
        realtime_debounce_ms: int | None = None,
        search_debounce_ms: int | None = None,
    ):
        self.db = db
        self.session = SessionStore(auth)
        self.store = EntityStore()
        self.feed = feed or ChangeFeed()
        self.bridge = RealtimeBridge(self.feed, debounce_ms=realtime_debounce_ms)
        self.notifier = NotificationCenter()
        self.functions = functions or FunctionsClient()
        self.ctx = ServiceContext(
            db=db,
            session=self.session,
            store=self.store,
            feed=self.feed,
            bridge=self.bridge,
            notifier=self.notifier,
        )
        self.bootstrapper = SessionBootstrapper(self.session, db)
        self._search_debounce_ms = search_debounce_ms
        self._build_services()

    def _build_services(self) -> None:
        ctx = self.ctx
        self.activities = ActivityService(ctx)
        self.subtasks = SubtaskService(ctx)
        self.pending_users = PendingUserService(ctx)
        self.lists = PersonalListService(ctx)
        self.history = ActivityHistoryService(ctx)
        self.assignees = AssigneeService(ctx)
        self.memberships = SubsectorMembershipService(ctx)
        self.invitations = InvitationService(ctx, self.functions)
        self.collaborators = CollaboratorService(ctx, self.functions)
        self.inbox = NotificationInboxService(ctx)
        self.search = ActivitySearch(ctx, debounce_ms=self._search_debounce_ms)

    @property
    def services(self) -> list[Any]:
        return [
            self.activities, self.subtasks, self.pending_users, self.lists, self.history,
            self.assignees, self.memberships, self.invitations, self.collaborators, self.inbox,
        ]

    async def start(self) -> None:
        """Restore the session and load the views that depend on it."""
        await self.bootstrapper.bootstrap()
        profile = self.session.profile
        if profile is None or not profile.sector_id:
            logger.info("Dashboard started without an authorized profile")
            return
        await self.activities.set_scope(ActivityScope(sector_id=profile.sector_id))
        await self.lists.refetch()
        await self.inbox.refetch()
        if self.session.is_approved_manager:
            await self.pending_users.refetch()

    async def _unmount(self) -> None:
        for service in self.services:
            service.close()
        await self.search.close()
        await self.bridge.close()

    async def sign_out(self) -> None:
        await self._unmount()
        await self.session.sign_out()
        self.store.clear()
        self.session.reset_lifecycle()
        self._build_services()
        # Nothing to restore after an explicit sign-out.
        self.session.loading = False

    async def close(self) -> None:
        await self._unmount()

"""Shared plumbing for the stateful dashboard services."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sectorboard.db.change_feed import ChangeEvent, ChangeFeed
from sectorboard.errors import MutationError, QueryError, SectorBoardError
from sectorboard.notifications import NotificationCenter
from sectorboard.observability import record_mutation
from sectorboard.realtime import RealtimeBridge
from sectorboard.session import SessionStore
from sectorboard.store import EntityStore

logger = logging.getLogger("sectorboard")


@dataclass
class ServiceContext:
    """Everything a service needs; one instance per dashboard."""
    db: Any
    session: SessionStore
    store: EntityStore
    feed: ChangeFeed
    bridge: RealtimeBridge
    notifier: NotificationCenter


class BaseService:
    """loading/error state, mount guard and failure reporting.

    ``_generation`` increases with every fetch; a result is applied only
    when it belongs to the newest fetch of a still-mounted service.
    """

    entity = ""

    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx
        self.loading = False
        self.error: Optional[str] = None
        self._mounted = True
        self._generation = 0
        self._subscription_key: Optional[str] = None
        self.last_failure: Optional[SectorBoardError] = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    def _begin_fetch(self) -> int:
        self._generation += 1
        self.loading = True
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _sector_label(self) -> str:
        profile = self.ctx.session.profile
        return (profile.sector_id if profile else None) or "unknown"

    def _publish(self, table: str, event_type: str, record_id: Optional[str], sector_id: Optional[str]) -> None:
        self.ctx.feed.publish(
            ChangeEvent(table=table, event_type=event_type, record_id=record_id, sector_id=sector_id)
        )

    def _query_failed(self, title: str, exc: Exception) -> None:
        self.last_failure = exc if isinstance(exc, SectorBoardError) else QueryError(str(exc))
        logger.error(f"{self.entity} query failed: {exc}")
        self.error = title
        self.ctx.notifier.error(title, "Please try again in a moment.")

    def _mutation_failed(self, action: str, title: str, exc: Exception) -> None:
        self.last_failure = exc if isinstance(exc, SectorBoardError) else MutationError(str(exc))
        logger.error(f"{self.entity} {action} failed: {exc}")
        record_mutation(self.entity, action, "error", sector_id=self._sector_label())
        self.ctx.notifier.error(title, "Your change was not saved.")

    def _mutation_succeeded(self, action: str) -> None:
        record_mutation(self.entity, action, "success", sector_id=self._sector_label())

    def _subscribe(self, key: str, tables: tuple[str, ...], sector_id: Optional[str]) -> None:
        if self._subscription_key and self._subscription_key != key:
            self.ctx.bridge.unsubscribe(self._subscription_key)
        self.ctx.bridge.subscribe(key, tables, sector_id, self.refetch)
        self._subscription_key = key

    async def refetch(self) -> Any:  # pragma: no cover - overridden
        raise NotImplementedError

    def close(self) -> None:
        """Unmount: release the realtime subscription and ignore late results."""
        self._mounted = False
        self.loading = False
        if self._subscription_key:
            self.ctx.bridge.unsubscribe(self._subscription_key)
            self._subscription_key = None

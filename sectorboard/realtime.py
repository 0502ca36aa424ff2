"""Real-time bridge: debounced refetch on backend change notifications.

Each subscription is keyed by its owner and scope. Subscribing again with the
same key and scope is a no-op; a different scope releases the old
subscription first, so remounts never stack listeners.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional

from sectorboard import config
from sectorboard.db.change_feed import ChangeEvent, ChangeFeed

logger = logging.getLogger("sectorboard.realtime")

RefetchCallback = Callable[[], Awaitable[Any]]


@dataclass
class _Subscription:
    key: str
    tables: frozenset[str]
    sector_id: Optional[str]
    callback: RefetchCallback
    unlisten: Callable[[], None]
    timer: Optional[asyncio.TimerHandle] = None
    inflight: set[asyncio.Task] = field(default_factory=set)
    events_seen: int = 0
    refetches: int = 0


class RealtimeBridge:
    def __init__(self, feed: ChangeFeed, debounce_ms: int | None = None):
        self._feed = feed
        self._debounce = max(0, debounce_ms if debounce_ms is not None else config.REALTIME_DEBOUNCE_MS) / 1000.0
        self._subscriptions: dict[str, _Subscription] = {}

    def subscribe(
        self,
        key: str,
        tables: Iterable[str],
        sector_id: Optional[str],
        callback: RefetchCallback,
    ) -> str:
        table_set = frozenset(tables)
        existing = self._subscriptions.get(key)
        if existing is not None:
            if existing.tables == table_set and existing.sector_id == sector_id:
                existing.callback = callback
                return key
            self.unsubscribe(key)

        sub = _Subscription(
            key=key,
            tables=table_set,
            sector_id=sector_id,
            callback=callback,
            unlisten=lambda: None,
        )
        sub.unlisten = self._feed.listen(table_set, sector_id, lambda event: self._on_event(sub, event))
        self._subscriptions[key] = sub
        logger.info(f"Subscribed {key} to {sorted(table_set)} (sector={sector_id})")
        return key

    def _on_event(self, sub: _Subscription, event: ChangeEvent) -> None:
        if self._subscriptions.get(sub.key) is not sub:
            return
        sub.events_seen += 1
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Dropping {event.table} change for {sub.key}: no running event loop")
            return
        if sub.timer is not None:
            sub.timer.cancel()
        sub.timer = loop.call_later(self._debounce, self._fire, sub)

    def _fire(self, sub: _Subscription) -> None:
        sub.timer = None
        if self._subscriptions.get(sub.key) is not sub:
            return
        sub.refetches += 1
        task = asyncio.ensure_future(self._run(sub))
        sub.inflight.add(task)
        task.add_done_callback(sub.inflight.discard)

    async def _run(self, sub: _Subscription) -> None:
        try:
            await sub.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Subscription-side failures are logged only; the view keeps its last data.
            logger.error(f"Realtime refetch failed for {sub.key}: {e}")

    def unsubscribe(self, key: str) -> bool:
        sub = self._subscriptions.pop(key, None)
        if sub is None:
            return False
        sub.unlisten()
        if sub.timer is not None:
            sub.timer.cancel()
            sub.timer = None
        for task in list(sub.inflight):
            task.cancel()
        logger.info(f"Unsubscribed {key}")
        return True

    async def close(self) -> None:
        tasks: list[asyncio.Task] = []
        for key in list(self._subscriptions):
            sub = self._subscriptions[key]
            tasks.extend(sub.inflight)
            self.unsubscribe(key)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def is_subscribed(self, key: str) -> bool:
        return key in self._subscriptions

    @property
    def keys(self) -> list[str]:
        return sorted(self._subscriptions)

    def stats(self) -> list[dict]:
        return [
            {
                "key": sub.key,
                "tables": sorted(sub.tables),
                "sectorId": sub.sector_id,
                "eventsSeen": sub.events_seen,
                "refetches": sub.refetches,
                "pending": sub.timer is not None,
            }
            for sub in self._subscriptions.values()
        ]

"""Debounced, latest-wins activity search."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from sectorboard import config
from sectorboard.db.factory import get_activity_repository
from sectorboard.models import Activity
from sectorboard.observability import record_refetch, start_span
from sectorboard.services.activities import row_to_activity, viewer_query
from sectorboard.services.base import ServiceContext

logger = logging.getLogger("sectorboard.search")


class ActivitySearch:
    """Free-text search over the activities the viewer may see.

    Every ``update_query`` call bumps the generation; a response is applied
    only if no newer query was issued while it was in flight.
    """

    def __init__(self, ctx: ServiceContext, debounce_ms: int | None = None, limit: int | None = None):
        self.ctx = ctx
        self.debounce = max(0, debounce_ms if debounce_ms is not None else config.SEARCH_DEBOUNCE_MS) / 1000.0
        self.limit = limit if limit is not None else config.SEARCH_LIMIT
        self.query = ""
        self.results: list[Activity] = []
        self.is_searching = False
        self.error: Optional[str] = None
        self.requests_issued = 0
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None

    def update_query(self, text: str) -> None:
        self.query = text
        self._generation += 1
        self._cancel_pending()
        if not text.strip():
            self.results = []
            self.is_searching = False
            self.error = None
            return
        self.is_searching = True
        self._pending = asyncio.ensure_future(self._debounced(self._generation, text.strip()))

    def clear(self) -> None:
        self.update_query("")

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def wait(self) -> list[Activity]:
        """Wait for the scheduled search (if any) to settle."""
        task = self._pending
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.results

    async def _debounced(self, generation: int, text: str) -> None:
        await asyncio.sleep(self.debounce)
        await self._execute(generation, text)

    async def search_now(self, text: str) -> list[Activity]:
        """Run a search immediately, skipping the debounce."""
        self.query = text
        self._generation += 1
        self._cancel_pending()
        if not text.strip():
            self.results = []
            self.is_searching = False
            return self.results
        self.is_searching = True
        await self._execute(self._generation, text.strip())
        return self.results

    async def _fetch(self, text: str) -> list[Activity]:
        profile, sector_id = self.ctx.session.require_sector()
        query = await viewer_query(self.ctx.db, profile, sector_id)
        self.requests_issued += 1
        rows = await get_activity_repository(self.ctx.db).search(query, text, self.limit)
        return [row_to_activity(r) for r in rows]

    async def _execute(self, generation: int, text: str) -> None:
        started = time.monotonic()
        sector = (self.ctx.session.profile.sector_id if self.ctx.session.profile else None) or "unknown"
        try:
            with start_span("activities.search", {"sector_id": sector}):
                results = await self._fetch(text)
        except Exception as e:
            record_refetch("search", "error", (time.monotonic() - started) * 1000, sector_id=sector)
            if generation == self._generation:
                logger.error(f"Search for {text!r} failed: {e}")
                self.error = "Could not search activities"
                self.is_searching = False
                self.ctx.notifier.error("Could not search activities", "Please try again in a moment.")
            return

        record_refetch("search", "success", (time.monotonic() - started) * 1000, sector_id=sector)
        if generation != self._generation:
            logger.debug(f"Dropping stale search results for {text!r}")
            return
        self.results = results
        self.error = None
        self.is_searching = False

    async def close(self) -> None:
        self._generation += 1
        task = self._pending
        self._cancel_pending()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

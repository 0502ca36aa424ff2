"""Row-change notifications.

``ChangeFeed`` is the in-process fan-out every mutation publishes to.
``PostgresChangeListener`` forwards ``pg_notify`` payloads emitted by the
table triggers into the same feed, so remote changes and local intent reach
subscribers through one path.
"""
from __future__ import annotations

import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from sectorboard import config
from sectorboard.errors import SubscriptionError

logger = logging.getLogger("sectorboard.realtime")


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str  # "INSERT" | "UPDATE" | "DELETE"
    record_id: Optional[str] = None
    sector_id: Optional[str] = None
    origin: str = "local"  # "local" | "remote"


ChangeHandler = Callable[[ChangeEvent], None]


class ChangeFeed:
    """Synchronous fan-out of change events to table/sector filtered handlers."""

    def __init__(self) -> None:
        self._handlers: dict[int, tuple[frozenset[str], Optional[str], ChangeHandler]] = {}
        self._ids = itertools.count(1)

    def listen(
        self,
        tables: Iterable[str],
        sector_id: Optional[str],
        handler: ChangeHandler,
    ) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it."""
        handle = next(self._ids)
        self._handlers[handle] = (frozenset(tables), sector_id, handler)

        def _unlisten() -> None:
            self._handlers.pop(handle, None)

        return _unlisten

    @staticmethod
    def _matches(event: ChangeEvent, tables: frozenset[str], sector_id: Optional[str]) -> bool:
        if event.table not in tables:
            return False
        if sector_id is None:
            return True
        return event.sector_id == sector_id

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event; returns how many handlers received it."""
        delivered = 0
        for tables, sector_id, handler in list(self._handlers.values()):
            if not self._matches(event, tables, sector_id):
                continue
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Change handler failed for {event.table}: {e}")
        return delivered

    @property
    def listener_count(self) -> int:
        return len(self._handlers)


def parse_notify_payload(payload: str) -> ChangeEvent | None:
    try:
        data: dict[str, Any] = json.loads(payload)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed change payload")
        return None
    if not isinstance(data, dict) or not data.get("table"):
        return None
    record_id = data.get("id")
    sector_id = data.get("sector_id")
    return ChangeEvent(
        table=str(data["table"]),
        event_type=str(data.get("type") or "UPDATE").upper(),
        record_id=str(record_id) if record_id is not None else None,
        sector_id=str(sector_id) if sector_id is not None else None,
        origin="remote",
    )


class PostgresChangeListener:
    """Holds one pooled connection LISTENing on the change channel."""

    def __init__(self, pool: Any, feed: ChangeFeed, channel: str | None = None):
        self._pool = pool
        self._feed = feed
        self._channel = channel or config.CHANGE_CHANNEL
        self._conn: Any = None

    async def start(self) -> None:
        if self._conn is not None:
            logger.warning("Change listener already running")
            return
        try:
            self._conn = await self._pool.acquire()
            await self._conn.add_listener(self._channel, self._on_notify)
        except Exception as e:
            if self._conn is not None:
                await self._pool.release(self._conn)
                self._conn = None
            raise SubscriptionError(f"Could not listen on {self._channel}: {e}") from e
        logger.info(f"Listening for backend changes on channel {self._channel}")

    def _on_notify(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        event = parse_notify_payload(payload)
        if event is not None:
            self._feed.publish(event)

    async def stop(self) -> None:
        if self._conn is None:
            return
        try:
            await self._conn.remove_listener(self._channel, self._on_notify)
        except Exception as e:
            logger.warning(f"Failed to remove change listener: {e}")
        finally:
            await self._pool.release(self._conn)
            self._conn = None
        logger.info("Change listener stopped")

    @property
    def is_running(self) -> bool:
        return self._conn is not None

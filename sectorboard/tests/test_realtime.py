import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from sectorboard.db.change_feed import ChangeEvent, ChangeFeed, PostgresChangeListener, parse_notify_payload
from sectorboard.errors import SubscriptionError
from sectorboard.realtime import RealtimeBridge


def _event(table: str = "activities", sector_id: str = "s1") -> ChangeEvent:
    return ChangeEvent(table=table, event_type="UPDATE", record_id="r1", sector_id=sector_id)


class ChangeFeedTests(unittest.TestCase):
    def test_filters_by_table_and_sector(self) -> None:
        feed = ChangeFeed()
        seen: list[ChangeEvent] = []
        feed.listen(["activities"], "s1", seen.append)

        feed.publish(_event("activities", "s1"))
        feed.publish(_event("activities", "s2"))
        feed.publish(_event("subtasks", "s1"))

        self.assertEqual(len(seen), 1)

    def test_unlisten_and_handler_errors(self) -> None:
        feed = ChangeFeed()

        def _broken(event):
            raise ValueError("boom")

        unlisten = feed.listen(["activities"], None, _broken)
        with self.assertLogs("sectorboard.realtime", level="ERROR"):
            self.assertEqual(feed.publish(_event()), 0)
        unlisten()
        self.assertEqual(feed.listener_count, 0)

    def test_parse_notify_payload(self) -> None:
        event = parse_notify_payload('{"table": "subtasks", "type": "insert", "id": 7, "sector_id": "s1"}')
        self.assertEqual(event, ChangeEvent("subtasks", "INSERT", "7", "s1", origin="remote"))
        self.assertIsNone(parse_notify_payload('{"type": "INSERT"}'))
        with self.assertLogs("sectorboard.realtime", level="WARNING"):
            self.assertIsNone(parse_notify_payload("not json"))


class RealtimeBridgeTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.feed = ChangeFeed()
        self.bridge = RealtimeBridge(self.feed, debounce_ms=30)
        self.calls = 0

    async def asyncTearDown(self) -> None:
        await self.bridge.close()

    async def _refetch(self) -> None:
        self.calls += 1

    async def test_burst_coalesces_into_one_refetch(self) -> None:
        self.bridge.subscribe("board:activities:s1", ["activities", "subtasks"], "s1", self._refetch)

        for table in ("activities", "subtasks", "activities", "activities"):
            self.feed.publish(_event(table))
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.1)

        self.assertEqual(self.calls, 1)

    async def test_separate_bursts_refetch_separately(self) -> None:
        self.bridge.subscribe("k", ["activities"], "s1", self._refetch)
        self.feed.publish(_event())
        await asyncio.sleep(0.08)
        self.feed.publish(_event())
        await asyncio.sleep(0.08)
        self.assertEqual(self.calls, 2)

    async def test_resubscribe_same_scope_does_not_stack(self) -> None:
        self.bridge.subscribe("k", ["activities"], "s1", self._refetch)
        self.bridge.subscribe("k", ["activities"], "s1", self._refetch)

        self.assertEqual(self.feed.listener_count, 1)
        self.feed.publish(_event())
        await asyncio.sleep(0.08)
        self.assertEqual(self.calls, 1)

    async def test_scope_change_replaces_subscription(self) -> None:
        self.bridge.subscribe("k", ["activities"], "s1", self._refetch)
        self.bridge.subscribe("k", ["activities"], "s2", self._refetch)

        self.assertEqual(self.feed.listener_count, 1)
        self.feed.publish(_event(sector_id="s1"))
        await asyncio.sleep(0.08)
        self.assertEqual(self.calls, 0)

    async def test_unsubscribe_cancels_pending_refetch(self) -> None:
        self.bridge.subscribe("k", ["activities"], "s1", self._refetch)
        self.feed.publish(_event())

        self.assertTrue(self.bridge.unsubscribe("k"))
        await asyncio.sleep(0.08)

        self.assertEqual(self.calls, 0)
        self.assertFalse(self.bridge.is_subscribed("k"))
        self.assertFalse(self.bridge.unsubscribe("k"))

    async def test_callback_failure_is_logged_not_raised(self) -> None:
        failing = AsyncMock(side_effect=RuntimeError("network down"))
        self.bridge.subscribe("k", ["activities"], "s1", failing)

        with self.assertLogs("sectorboard.realtime", level="ERROR"):
            self.feed.publish(_event())
            await asyncio.sleep(0.08)

        failing.assert_awaited_once()
        self.assertTrue(self.bridge.is_subscribed("k"))


class PostgresChangeListenerTests(unittest.IsolatedAsyncioTestCase):
    async def test_notifications_reach_the_feed(self) -> None:
        conn = MagicMock()
        conn.add_listener = AsyncMock()
        conn.remove_listener = AsyncMock()
        pool = MagicMock()
        pool.acquire = AsyncMock(return_value=conn)
        pool.release = AsyncMock()
        feed = ChangeFeed()
        seen: list[ChangeEvent] = []
        feed.listen(["activities"], "s1", seen.append)

        listener = PostgresChangeListener(pool, feed, channel="changes")
        await listener.start()
        callback = conn.add_listener.await_args.args[1]
        callback(conn, 1, "changes", '{"table": "activities", "type": "DELETE", "id": "a1", "sector_id": "s1"}')
        await listener.stop()

        self.assertEqual(seen[0].origin, "remote")
        self.assertEqual(seen[0].event_type, "DELETE")
        pool.release.assert_awaited_once_with(conn)
        self.assertFalse(listener.is_running)

    async def test_start_failure_raises_subscription_error(self) -> None:
        conn = MagicMock()
        conn.add_listener = AsyncMock(side_effect=OSError("connection reset"))
        pool = MagicMock()
        pool.acquire = AsyncMock(return_value=conn)
        pool.release = AsyncMock()

        listener = PostgresChangeListener(pool, ChangeFeed(), channel="changes")
        with self.assertRaises(SubscriptionError):
            await listener.start()
        pool.release.assert_awaited_once_with(conn)


if __name__ == "__main__":
    unittest.main()

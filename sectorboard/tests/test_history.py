import unittest

from sectorboard.db.repositories.history import SqliteActivityHistoryRepository
from sectorboard.models import ActivityHistoryEntry
from sectorboard.services.history import HistoryFilters, change_flags, describe
from sectorboard.tests.support import COLLAB_1, MANAGER, SECTOR, SUB_1, SUB_2, open_db, seed_org, signed_in


def _entry(action: str, **fields) -> ActivityHistoryEntry:
    fields.setdefault("performer_name", "Maria Manager")
    return ActivityHistoryEntry(
        id="h1", activity_id="a1", action=action, performed_by=MANAGER, sector_id=SECTOR, **fields,
    )


class DescribeTests(unittest.TestCase):
    def test_status_change_uses_readable_labels(self) -> None:
        text = describe(_entry("status_changed", old_status="pending", new_status="in_progress"))
        self.assertEqual(text, 'Maria Manager changed the status from "Pending" to "In progress"')

    def test_update_lists_changed_fields(self) -> None:
        text = describe(_entry("updated", details={"changes": {"title_changed": True, "priority_changed": True,
                                                                "description_changed": False}}))
        self.assertEqual(text, "Maria Manager updated title, priority")
        self.assertEqual(describe(_entry("updated")), "Maria Manager updated the activity")

    def test_other_actions(self) -> None:
        self.assertEqual(describe(_entry("archived")), "Maria Manager archived the activity")
        self.assertEqual(describe(_entry("created", performer_name=None)), "Unknown user created the activity")

    def test_change_flags_ignore_unchanged_values(self) -> None:
        flags = change_flags({"title": "A", "priority": "low"}, {"title": "A", "priority": "high", "user_id": "u2"})
        self.assertFalse(flags["title_changed"])
        self.assertTrue(flags["priority_changed"])
        self.assertTrue(flags["assigned_to_changed"])
        self.assertFalse(flags["due_date_changed"])


class HistoryServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        repo = SqliteActivityHistoryRepository(self.db)
        for entry_id, subsector_id, created_at in (
            ("h1", SUB_1, "2026-03-01T09:00:00+00:00"),
            ("h2", SUB_1, "2026-03-02T23:59:00+00:00"),
            ("h3", SUB_2, "2026-03-03T08:00:00+00:00"),
        ):
            await repo.append({
                "id": entry_id, "activity_id": f"act-{entry_id}", "action": "created",
                "performed_by": MANAGER, "activity_title": entry_id, "subsector_id": subsector_id,
                "sector_id": SECTOR, "created_at": created_at,
            })
        self.dashboards = []

    async def asyncTearDown(self) -> None:
        for dashboard in self.dashboards:
            await dashboard.close()
        await self.db.close()

    async def _history(self, user_id: str):
        dashboard = await signed_in(self.db, user_id)
        self.dashboards.append(dashboard)
        return dashboard.history

    async def test_manager_sees_sector_newest_first(self) -> None:
        history = await self._history(MANAGER)
        entries = await history.refetch()
        self.assertEqual([e.id for e in entries], ["h3", "h2", "h1"])
        self.assertEqual(entries[0].performer_name, "Maria Manager")

    async def test_date_to_includes_the_whole_day(self) -> None:
        history = await self._history(MANAGER)
        entries = await history.set_filters(HistoryFilters(date_from="2026-03-02", date_to="2026-03-02"))
        self.assertEqual([e.id for e in entries], ["h2"])

    async def test_collaborator_is_limited_to_own_subsector(self) -> None:
        history = await self._history(COLLAB_1)
        entries = await history.set_filters(HistoryFilters(subsector_id=SUB_2))
        self.assertEqual({e.id for e in entries}, {"h1", "h2"})

    async def test_activity_filter_and_limit(self) -> None:
        history = await self._history(MANAGER)
        self.assertEqual([e.id for e in await history.set_filters(HistoryFilters(activity_id="act-h1"))], ["h1"])
        self.assertEqual(len(await history.set_filters(HistoryFilters(limit=2))), 2)


if __name__ == "__main__":
    unittest.main()

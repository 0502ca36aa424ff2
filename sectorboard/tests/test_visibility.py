import unittest

from sectorboard.db.queries import ActivityQuery, Params, build_activity_where
from sectorboard.db.repositories.activities import SqliteActivityRepository
from sectorboard.db.repositories.memberships import SqliteSubsectorMembershipRepository
from sectorboard.services.activities import ActivityScope
from sectorboard.tests.support import (
    COLLAB_1,
    COLLAB_2,
    MANAGER,
    SECTOR,
    SUB_1,
    SUB_2,
    insert_activity,
    open_db,
    seed_org,
    signed_in,
)


class ActivityWhereTests(unittest.TestCase):
    def test_collaborator_without_subsectors_only_sees_own(self) -> None:
        params = Params("qmark")
        where = build_activity_where(ActivityQuery(sector_id="s", viewer_id="u"), params)
        self.assertIn("a.created_by = ?", where)
        self.assertNotIn("IN (", where)
        self.assertEqual(params.values, ["s", "u", "u", "archived"])

    def test_manager_has_no_subsector_clause_and_numeric_placeholders(self) -> None:
        params = Params("numeric")
        where = build_activity_where(
            ActivityQuery(sector_id="s", viewer_id="m", viewer_role="manager", member_subsector_ids=("x",)),
            params,
        )
        self.assertNotIn("subsector_id IN", where)
        self.assertIn("$1", where)
        self.assertEqual(params.values, ["s", "m", "archived"])

    def test_text_filter_escapes_like_wildcards(self) -> None:
        params = Params("qmark")
        build_activity_where(ActivityQuery(sector_id="s", viewer_id="u", text="50%_off"), params)
        self.assertIn("%50\\%\\_off%", params.values)


class RoleVisibilityTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        # A: subsector 2, created by C1 (cross-subsector own item)
        await insert_activity(self.db, "A", COLLAB_1, subsector_id=SUB_2)
        # B: subsector 2, created by C2
        await insert_activity(self.db, "B", COLLAB_2, subsector_id=SUB_2)
        # D: subsector 1, created by the manager
        await insert_activity(self.db, "D", MANAGER, subsector_id=SUB_1)
        # P: private item of C2
        await insert_activity(self.db, "P", COLLAB_2, subsector_id=SUB_2, is_private=True)
        # X: archived item in subsector 1
        await insert_activity(self.db, "X", MANAGER, subsector_id=SUB_1, status="archived")
        self.dashboards = []

    async def asyncTearDown(self) -> None:
        for dashboard in self.dashboards:
            await dashboard.close()
        await self.db.close()

    async def _visible_ids(self, user_id: str, **scope) -> set[str]:
        dashboard = await signed_in(self.db, user_id)
        self.dashboards.append(dashboard)
        activities = await dashboard.activities.set_scope(ActivityScope(sector_id=SECTOR, **scope))
        return {a.id for a in activities}

    async def test_collaborator_sees_subsector_plus_own_items(self) -> None:
        self.assertEqual(await self._visible_ids(COLLAB_1), {"A", "D"})

    async def test_collaborator_never_sees_other_subsector_items_of_others(self) -> None:
        visible = await self._visible_ids(COLLAB_1)
        rows = await SqliteActivityRepository(self.db).list_visible(
            ActivityQuery(sector_id=SECTOR, viewer_id=MANAGER, viewer_role="manager", include_archived=True)
        )
        subsector_of = {r["id"]: r["subsector_id"] for r in rows}
        for activity_id in visible:
            self.assertTrue(subsector_of[activity_id] == SUB_1 or activity_id == "A")

    async def test_membership_table_overrides_profile_subsector(self) -> None:
        await SqliteSubsectorMembershipRepository(self.db).replace(COLLAB_1, [SUB_2])
        self.assertEqual(await self._visible_ids(COLLAB_1), {"A", "B"})

    async def test_manager_sees_sector_except_others_private(self) -> None:
        self.assertEqual(await self._visible_ids(MANAGER), {"A", "B", "D"})

    async def test_private_items_visible_to_creator(self) -> None:
        self.assertEqual(await self._visible_ids(COLLAB_2), {"A", "B", "P"})

    async def test_archived_only_with_explicit_scope(self) -> None:
        self.assertIn("X", await self._visible_ids(MANAGER, include_archived=True))
        self.assertEqual(await self._visible_ids(MANAGER, statuses=("archived",)), {"X"})

    async def test_subsector_filter_is_combined_with_role_scope(self) -> None:
        self.assertEqual(await self._visible_ids(COLLAB_1, subsector_id=SUB_2), {"A"})


if __name__ == "__main__":
    unittest.main()

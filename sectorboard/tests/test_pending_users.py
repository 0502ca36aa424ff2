import unittest
from unittest.mock import AsyncMock, patch

from sectorboard.db.repositories.profiles import SqlitePendingUserRepository, SqliteProfileRepository
from sectorboard.tests.support import COLLAB_1, MANAGER, SECTOR, SUB_2, open_db, seed_org, signed_in


class PendingUserServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        self.pending_repo = SqlitePendingUserRepository(self.db)
        self.profiles = SqliteProfileRepository(self.db)
        await self.pending_repo.create(
            {"id": "new-user", "email": "new@example.com", "full_name": "Nina New", "sector_id": SECTOR, "subsector_id": SUB_2}
        )
        self.dashboard = await signed_in(self.db, MANAGER)
        self.service = self.dashboard.pending_users

    async def asyncTearDown(self) -> None:
        await self.dashboard.close()
        await self.db.close()

    async def test_refetch_lists_pending_with_names(self) -> None:
        pending = await self.service.refetch()
        self.assertEqual([p.id for p in pending], ["new-user"])
        self.assertEqual(pending[0].sector_name, "Operations")
        self.assertEqual(pending[0].subsector_name, "Finance")

    async def test_approve_creates_exactly_one_approved_profile(self) -> None:
        await self.service.refetch()

        profile = await self.service.approve("new-user")

        self.assertIsNotNone(profile)
        self.assertTrue(profile.is_approved)
        self.assertEqual(profile.approved_by, MANAGER)
        self.assertEqual(profile.role, "collaborator")
        self.assertEqual(profile.subsector_id, SUB_2)
        self.assertEqual((await self.pending_repo.get_by_id("new-user"))["status"], "approved")
        self.assertEqual(self.service.pending, [])
        self.assertEqual(len([p for p in await self.profiles.list_by_sector(SECTOR) if p["id"] == "new-user"]), 1)

    async def test_second_approval_is_refused(self) -> None:
        await self.service.approve("new-user")
        self.assertIsNone(await self.service.approve("new-user"))

    async def test_reject_never_creates_profile(self) -> None:
        self.assertTrue(await self.service.reject("new-user"))

        self.assertIsNone(await self.profiles.get_by_id("new-user"))
        self.assertEqual((await self.pending_repo.get_by_id("new-user"))["status"], "rejected")

    async def test_reject_after_approval_is_refused(self) -> None:
        await self.service.approve("new-user")

        self.assertFalse(await self.service.reject("new-user"))

        self.assertEqual((await self.pending_repo.get_by_id("new-user"))["status"], "approved")
        self.assertIsNotNone(await self.profiles.get_by_id("new-user"))
        self.assertEqual(self.dashboard.notifier.toasts[-1].title, "Could not reject user")

    async def test_rejection_is_terminal(self) -> None:
        self.assertTrue(await self.service.reject("new-user"))

        self.assertFalse(await self.service.reject("new-user"))
        self.assertIsNone(await self.service.approve("new-user"))
        self.assertIsNone(await self.profiles.get_by_id("new-user"))

    async def test_failed_profile_creation_leaves_record_pending(self) -> None:
        with patch.object(SqliteProfileRepository, "create", AsyncMock(side_effect=RuntimeError("duplicate key"))):
            self.assertIsNone(await self.service.approve("new-user"))

        self.assertEqual((await self.pending_repo.get_by_id("new-user"))["status"], "pending")
        self.assertIsNone(await self.profiles.get_by_id("new-user"))
        self.assertEqual(self.dashboard.notifier.toasts[-1].title, "Could not approve user")

    async def test_failed_status_update_keeps_profile(self) -> None:
        with patch.object(SqlitePendingUserRepository, "set_status", AsyncMock(side_effect=RuntimeError("timeout"))):
            with self.assertLogs("sectorboard.approvals", level="WARNING"):
                profile = await self.service.approve("new-user")

        self.assertIsNotNone(profile)
        self.assertIsNotNone(await self.profiles.get_by_id("new-user"))
        self.assertEqual((await self.pending_repo.get_by_id("new-user"))["status"], "pending")

    async def test_unmatched_status_update_is_logged(self) -> None:
        with patch.object(SqlitePendingUserRepository, "set_status", AsyncMock(return_value=False)):
            with self.assertLogs("sectorboard.approvals", level="WARNING") as logs:
                profile = await self.service.approve("new-user")

        self.assertIsNotNone(profile)
        self.assertIn("no pending record was updated", logs.output[0])


class PendingUserPermissionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        await SqliteProfileRepository(self.db).create(
            {"id": "user-m2", "email": "m2@example.com", "role": "manager", "sector_id": SECTOR, "is_approved": False}
        )
        await SqlitePendingUserRepository(self.db).create({"id": "new-user", "email": "new@example.com", "sector_id": SECTOR})
        self.dashboards = []

    async def asyncTearDown(self) -> None:
        for dashboard in self.dashboards:
            await dashboard.close()
        await self.db.close()

    async def _dashboard(self, user_id: str):
        dashboard = await signed_in(self.db, user_id)
        self.dashboards.append(dashboard)
        return dashboard

    async def test_unapproved_manager_gets_empty_list_without_query(self) -> None:
        dashboard = await self._dashboard("user-m2")
        with patch.object(SqlitePendingUserRepository, "list_pending", AsyncMock(return_value=[])) as list_pending:
            self.assertEqual(await dashboard.pending_users.refetch(), [])
        list_pending.assert_not_awaited()

    async def test_collaborator_cannot_approve_or_reject(self) -> None:
        dashboard = await self._dashboard(COLLAB_1)

        self.assertIsNone(await dashboard.pending_users.approve("new-user"))
        self.assertFalse(await dashboard.pending_users.reject("new-user"))

        self.assertIsNone(await SqliteProfileRepository(self.db).get_by_id("new-user"))
        record = await SqlitePendingUserRepository(self.db).get_by_id("new-user")
        self.assertEqual(record["status"], "pending")


if __name__ == "__main__":
    unittest.main()

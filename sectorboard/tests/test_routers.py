import unittest
from types import SimpleNamespace

from fastapi import HTTPException

from sectorboard.db.repositories.subtasks import SqliteSubtaskRepository
from sectorboard.errors import MutationError
from sectorboard.models import ActivityCreate, ActivityPatch
from sectorboard.routers.activities import (
    StatusChange,
    SubtaskCreate,
    SubtaskPatch,
    add_subtask,
    change_status,
    create_activity,
    delete_activity,
    delete_subtask,
    list_activities,
    toggle_subtask,
    update_activity,
    update_subtask,
)
from sectorboard.routers.approvals import list_pending
from sectorboard.routers.deps import require_user
from sectorboard.routers.notifications import dismiss_all, list_toasts
from sectorboard.routers.search import search_activities
from sectorboard.routers.session import get_session, sign_out
from sectorboard.routers.team import SubsectorSet, sector_history, set_subsectors
from sectorboard.tests.support import COLLAB_1, MANAGER, SUB_1, insert_activity, open_db, seed_org, signed_in


def _request(dashboard=None):
    state = SimpleNamespace()
    if dashboard is not None:
        state.dashboard = dashboard
    return SimpleNamespace(app=SimpleNamespace(state=state))


class RouterGuardTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        self.dashboards = []

    async def asyncTearDown(self) -> None:
        for dashboard in self.dashboards:
            await dashboard.close()
        await self.db.close()

    async def _dashboard(self, user_id: str):
        dashboard = await signed_in(self.db, user_id)
        self.dashboards.append(dashboard)
        return dashboard

    async def test_missing_dashboard_is_503(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            require_user(_request())
        self.assertEqual(ctx.exception.status_code, 503)

    async def test_signed_out_is_401(self) -> None:
        dashboard = await self._dashboard(MANAGER)
        await sign_out(_request(dashboard))

        with self.assertRaises(HTTPException) as ctx:
            await list_activities(_request(dashboard), status=[], include_archived=False)
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertFalse((await get_session(_request(dashboard)))["isAuthenticated"])

    async def test_collaborator_gets_403_on_manager_routes(self) -> None:
        request = _request(await self._dashboard(COLLAB_1))
        with self.assertRaises(HTTPException) as ctx:
            await list_pending(request)
        self.assertEqual(ctx.exception.status_code, 403)
        with self.assertRaises(HTTPException) as ctx:
            await set_subsectors(request, COLLAB_1, SubsectorSet(subsector_ids=[SUB_1]))
        self.assertEqual(ctx.exception.status_code, 403)

    async def test_unknown_status_filter_is_400(self) -> None:
        request = _request(await self._dashboard(MANAGER))
        with self.assertRaises(HTTPException) as ctx:
            await list_activities(request, status=["done"], include_archived=False)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_bad_history_date_is_422(self) -> None:
        request = _request(await self._dashboard(MANAGER))
        with self.assertRaises(HTTPException) as ctx:
            await sector_history(request, date_from="yesterday", limit=100)
        self.assertEqual(ctx.exception.status_code, 422)


class ActivityRouterTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        self.dashboard = await signed_in(self.db, COLLAB_1)
        self.request = _request(self.dashboard)

    async def asyncTearDown(self) -> None:
        await self.dashboard.close()
        await self.db.close()

    async def test_create_update_and_complete(self) -> None:
        created = await create_activity(self.request, ActivityCreate(title="Check pallets"))
        self.assertEqual(created.status, "pending")
        self.assertEqual(created.user_id, COLLAB_1)

        updated = await update_activity(self.request, created.id, ActivityPatch(priority="high"))
        self.assertEqual(updated.priority, "high")

        completed = await change_status(self.request, created.id, StatusChange(status="completed"))
        self.assertIsNotNone(completed.completed_at)

        listed = await list_activities(self.request, status=[], include_archived=False)
        self.assertEqual([a.id for a in listed], [created.id])

    async def test_failed_mutation_maps_to_toast_title(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await update_activity(self.request, "missing", ActivityPatch(title="x"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.detail, "Could not update activity")
        self.assertIsInstance(self.dashboard.activities.last_failure, MutationError)

    async def test_subtask_and_delete(self) -> None:
        created = await create_activity(self.request, ActivityCreate(title="Pack"))
        subtask = await add_subtask(self.request, created.id, SubtaskCreate(title="Tape"))
        self.assertEqual(subtask.order_index, 0)

        self.assertEqual(await delete_activity(self.request, created.id), {"deleted": created.id})

    async def test_subtask_addressed_through_another_activity_is_404(self) -> None:
        owner = await create_activity(self.request, ActivityCreate(title="Pack"))
        other = await create_activity(self.request, ActivityCreate(title="Ship"))
        subtask = await add_subtask(self.request, owner.id, SubtaskCreate(title="Tape"))

        for call in (
            lambda: toggle_subtask(self.request, other.id, subtask.id),
            lambda: update_subtask(self.request, other.id, subtask.id, SubtaskPatch(title="Glue")),
            lambda: delete_subtask(self.request, other.id, subtask.id),
        ):
            with self.assertRaises(HTTPException) as ctx:
                await call()
            self.assertEqual(ctx.exception.status_code, 404)

        row = await SqliteSubtaskRepository(self.db).get_by_id(subtask.id)
        self.assertEqual((row["title"], bool(row["is_completed"])), ("Tape", False))
        toggled = await toggle_subtask(self.request, owner.id, subtask.id)
        self.assertTrue(toggled.is_completed)

    async def test_search_route(self) -> None:
        await insert_activity(self.db, "a1", COLLAB_1, title="Quarterly report", subsector_id=SUB_1)
        results = await search_activities(self.request, q="REPORT")
        self.assertEqual([a.id for a in results], ["a1"])
        self.assertEqual(await search_activities(self.request, q=""), [])

    async def test_toasts_route(self) -> None:
        await create_activity(self.request, ActivityCreate(title="Pack"))
        self.dashboard.notifier.error("Could not load activities", "Please try again in a moment.")
        toasts = await list_toasts(self.request)
        self.assertEqual(toasts[-1].title, "Could not load activities")
        await dismiss_all(self.request)
        self.assertEqual(await list_toasts(self.request), [])


if __name__ == "__main__":
    unittest.main()

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import requests

from sectorboard import config
from sectorboard.db.repositories.inbox import SqliteInvitationRepository
from sectorboard.errors import FunctionCallError
from sectorboard.functions import FunctionsClient
from sectorboard.services.invitations import invite_link
from sectorboard.tests.support import COLLAB_1, COLLAB_2, MANAGER, SECTOR, SUB_1, open_db, seed_org, signed_in


class _Response:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FunctionsClientTests(unittest.IsolatedAsyncioTestCase):
    def _client(self, response=None, error=None) -> tuple[FunctionsClient, MagicMock]:
        http = MagicMock()
        if error is not None:
            http.post.side_effect = error
        else:
            http.post.return_value = response
        return FunctionsClient(base_url="https://fn.example.co/functions/v1/", api_key="anon", timeout=3, http=http), http

    async def test_delete_user_sends_user_id_and_bearer_token(self) -> None:
        client, http = self._client(_Response(200, {"success": True}))

        result = await client.delete_user("user-9", "user-token")

        self.assertEqual(result, {"success": True})
        args, kwargs = http.post.call_args
        self.assertEqual(args[0], "https://fn.example.co/functions/v1/delete-user")
        self.assertEqual(kwargs["params"], {"userId": "user-9"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer user-token")
        self.assertEqual(kwargs["headers"]["apikey"], "anon")
        self.assertEqual(kwargs["timeout"], 3)

    async def test_invitation_email_body_is_camel_case(self) -> None:
        client, http = self._client(_Response(200, {}))
        await client.send_invitation_email("t", email="x@example.com", invite_link="http://app/auth?token=abc",
                                           inviter_name="Maria")
        body = http.post.call_args.kwargs["json"]
        self.assertEqual(body["inviteLink"], "http://app/auth?token=abc")
        self.assertEqual(body["inviterName"], "Maria")

    async def test_error_payload_becomes_function_call_error(self) -> None:
        client, _ = self._client(_Response(403, {"error": "Only managers can delete users"}))
        with self.assertRaises(FunctionCallError) as ctx:
            await client.delete_user("user-9", "t")
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertIn("Only managers can delete users", str(ctx.exception))

    async def test_network_error_becomes_function_call_error(self) -> None:
        client, _ = self._client(error=requests.ConnectionError("refused"))
        with self.assertRaisesRegex(FunctionCallError, "unreachable"):
            await client.delete_user("user-9", "t")

    async def test_missing_endpoint(self) -> None:
        client = FunctionsClient(base_url="", api_key="anon", http=MagicMock())
        with self.assertRaises(FunctionCallError):
            await client.invoke("delete-user", "t")


class InvitationServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        self.functions = MagicMock(spec=FunctionsClient)
        self.functions.send_invitation_email = AsyncMock(return_value={})
        self.functions.delete_user = AsyncMock(return_value={"success": True})
        self.dashboards = []

    async def asyncTearDown(self) -> None:
        for dashboard in self.dashboards:
            await dashboard.close()
        await self.db.close()

    async def _dashboard(self, user_id: str):
        dashboard = await signed_in(self.db, user_id, functions=self.functions)
        self.dashboards.append(dashboard)
        return dashboard

    async def test_create_stores_token_and_expiry_then_emails(self) -> None:
        dashboard = await self._dashboard(MANAGER)

        with patch.object(config, "FRONTEND_ORIGIN", "https://board.example.org/"):
            invitation = await dashboard.invitations.create(" New@Example.com", SUB_1)

        self.assertEqual(invitation.email, "new@example.com")
        self.assertEqual(invitation.sector_id, SECTOR)
        self.assertEqual(invitation.invited_by, MANAGER)
        self.assertGreaterEqual(len(invitation.token), 32)
        expires = datetime.fromisoformat(invitation.expires_at)
        self.assertAlmostEqual(
            (expires - datetime.now(timezone.utc)).total_seconds(),
            timedelta(days=config.INVITATION_TTL_DAYS).total_seconds(),
            delta=60,
        )
        kwargs = self.functions.send_invitation_email.await_args.kwargs
        self.assertEqual(kwargs["invite_link"], f"https://board.example.org/auth?token={invitation.token}")
        self.assertEqual(kwargs["inviter_name"], "Maria Manager")
        self.assertEqual([i.id for i in await dashboard.invitations.refetch()], [invitation.id])

    async def test_email_failure_does_not_fail_invitation(self) -> None:
        self.functions.send_invitation_email.side_effect = FunctionCallError("smtp down", status_code=500)
        dashboard = await self._dashboard(MANAGER)

        with self.assertLogs("sectorboard.invitations", level="WARNING"):
            invitation = await dashboard.invitations.create("x@example.com")

        self.assertIsNotNone(invitation)
        self.assertIsNotNone(await SqliteInvitationRepository(self.db).get_by_id(invitation.id))

    async def test_collaborator_cannot_invite(self) -> None:
        dashboard = await self._dashboard(COLLAB_1)
        self.assertIsNone(await dashboard.invitations.create("x@example.com"))
        self.assertEqual(await dashboard.invitations.refetch(), [])
        self.functions.send_invitation_email.assert_not_awaited()

    async def test_resend_and_cancel(self) -> None:
        dashboard = await self._dashboard(MANAGER)
        invitation = await dashboard.invitations.create("x@example.com")

        self.assertTrue(await dashboard.invitations.resend(invitation.id))
        self.assertEqual(self.functions.send_invitation_email.await_count, 2)

        self.assertTrue(await dashboard.invitations.cancel(invitation.id))
        self.assertIsNone(await SqliteInvitationRepository(self.db).get_by_id(invitation.id))
        self.assertFalse(await dashboard.invitations.cancel(invitation.id))

    def test_invite_link(self) -> None:
        with patch.object(config, "FRONTEND_ORIGIN", "http://localhost:5173"):
            self.assertEqual(invite_link("abc"), "http://localhost:5173/auth?token=abc")


class CollaboratorServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)
        self.functions = MagicMock(spec=FunctionsClient)
        self.functions.delete_user = AsyncMock(return_value={"success": True})
        self.dashboard = await signed_in(self.db, MANAGER, functions=self.functions)

    async def asyncTearDown(self) -> None:
        await self.dashboard.close()
        await self.db.close()

    async def test_roster_lists_sector_members(self) -> None:
        members = await self.dashboard.collaborators.refetch()
        self.assertEqual({m.id for m in members}, {MANAGER, COLLAB_1, COLLAB_2})

    async def test_manager_removes_member_through_endpoint(self) -> None:
        await self.dashboard.collaborators.refetch()

        self.assertTrue(await self.dashboard.collaborators.delete_user(COLLAB_2))

        self.functions.delete_user.assert_awaited_once_with(COLLAB_2, f"token-{MANAGER}")
        self.assertNotIn(COLLAB_2, {m.id for m in self.dashboard.collaborators.members})

    async def test_manager_cannot_remove_self_or_unknown_user(self) -> None:
        self.assertFalse(await self.dashboard.collaborators.delete_user(MANAGER))
        self.assertFalse(await self.dashboard.collaborators.delete_user("someone-else"))
        self.functions.delete_user.assert_not_awaited()

    async def test_endpoint_failure_is_reported(self) -> None:
        self.functions.delete_user.side_effect = FunctionCallError("delete-user failed: forbidden", status_code=403)
        self.assertFalse(await self.dashboard.collaborators.delete_user(COLLAB_1))
        self.assertEqual(self.dashboard.notifier.toasts[-1].title, "Could not remove user")


if __name__ == "__main__":
    unittest.main()

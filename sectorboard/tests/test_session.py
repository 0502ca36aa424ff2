import asyncio
import json
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from sectorboard.db.repositories.profiles import SqliteProfileRepository
from sectorboard.errors import AuthError
from sectorboard.models import AuthSession, AuthUser
from sectorboard.session import PersistedSessionAuth, SessionBootstrapper, SessionStore
from sectorboard.tests.support import MANAGER, StaticAuth, auth_for, open_db, seed_org


class SessionBootstrapTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_db()
        await seed_org(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_concurrent_bootstraps_run_once(self) -> None:
        auth = auth_for(MANAGER)
        store = SessionStore(auth)

        await asyncio.gather(
            SessionBootstrapper(store, self.db).bootstrap(),
            SessionBootstrapper(store, self.db).bootstrap(),
            SessionBootstrapper(store, self.db).bootstrap(),
        )
        await SessionBootstrapper(store, self.db).bootstrap()

        self.assertEqual(auth.get_calls, 1)
        self.assertTrue(store.is_authenticated)
        self.assertTrue(store.is_approved_manager)
        self.assertFalse(store.loading)
        self.assertEqual(store.access_token, f"token-{MANAGER}")

    async def test_reset_lifecycle_allows_a_new_bootstrap(self) -> None:
        auth = auth_for(MANAGER)
        store = SessionStore(auth)
        await SessionBootstrapper(store, self.db).bootstrap()

        store.reset_lifecycle()
        await SessionBootstrapper(store, self.db).bootstrap()

        self.assertEqual(auth.get_calls, 2)

    async def test_no_session_leaves_empty_state(self) -> None:
        store = SessionStore(StaticAuth(None))
        await SessionBootstrapper(store, self.db).bootstrap()

        self.assertIsNone(store.user)
        self.assertIsNone(store.profile)
        self.assertFalse(store.loading)
        self.assertFalse(store.is_authenticated)

    async def test_missing_profile_signs_out(self) -> None:
        auth = auth_for("user-without-profile")
        store = SessionStore(auth)

        await SessionBootstrapper(store, self.db).bootstrap()

        self.assertEqual(auth.sign_outs, 1)
        self.assertIsNone(store.user)
        self.assertIsNone(store.profile)
        self.assertFalse(store.loading)

    async def test_profile_query_error_is_swallowed(self) -> None:
        store = SessionStore(auth_for(MANAGER))

        with patch.object(SqliteProfileRepository, "get_by_id", AsyncMock(side_effect=RuntimeError("timeout"))):
            with self.assertLogs("sectorboard.session", level="ERROR"):
                await SessionBootstrapper(store, self.db).bootstrap()

        self.assertIsNotNone(store.user)
        self.assertIsNone(store.profile)
        self.assertFalse(store.loading)
        self.assertFalse(store.is_authenticated)
        with self.assertRaises(AuthError):
            store.require_profile()


class PersistedSessionAuthTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "session.json"
        self.auth = PersistedSessionAuth(self.path)

    async def asyncTearDown(self) -> None:
        self.tmp.cleanup()

    async def test_missing_or_malformed_file_is_no_session(self) -> None:
        self.assertIsNone(await self.auth.get_session())
        self.path.write_text("{not json")
        self.assertIsNone(await self.auth.get_session())

    async def test_expired_session_is_ignored(self) -> None:
        self.path.write_text(json.dumps({
            "access_token": "t",
            "expires_at": time.time() - 60,
            "user": {"id": "u1", "email": "u1@example.com"},
        }))
        self.assertIsNone(await self.auth.get_session())

    async def test_save_then_sign_out_removes_file(self) -> None:
        session = AuthSession(access_token="t", expires_at=time.time() + 3600, user=AuthUser(id="u1"))
        await self.auth.save_session(session)
        self.assertEqual((await self.auth.get_session()).user.id, "u1")

        await self.auth.sign_out()
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()

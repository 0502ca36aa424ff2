"""Session store and bootstrapper.

The store holds the signed-in identity for the lifetime of the process.
Bootstrapping runs exactly once per store lifecycle: the guard is the
store's own task handle, so repeated or concurrent ``bootstrap()`` calls
(remounts, parallel requests) all await the same run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional, Protocol

from sectorboard.db.factory import get_profile_repository
from sectorboard.errors import AuthError
from sectorboard.models import AuthSession, AuthUser, Profile

logger = logging.getLogger("sectorboard.session")


class AuthClient(Protocol):
    async def get_session(self) -> Optional[AuthSession]: ...

    async def sign_out(self) -> None: ...


class PersistedSessionAuth:
    """Session persisted as JSON by the auth provider's sign-in flow."""

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path

    async def get_session(self) -> Optional[AuthSession]:
        if not self.storage_path.exists():
            return None
        try:
            content = self.storage_path.read_text()
            if not content.strip():
                return None
            session = AuthSession(**json.loads(content))
        except Exception as e:
            logger.error(f"Failed to load persisted session: {e}")
            return None
        if session.expires_at is not None and session.expires_at <= time.time():
            logger.info("Persisted session expired")
            return None
        return session

    async def save_session(self, session: AuthSession) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps(session.model_dump(), indent=2))

    async def sign_out(self) -> None:
        self.storage_path.unlink(missing_ok=True)


class SessionStore:
    """Current user, session and resolved profile.

    "Authenticated but profile is None" means not authorized, never
    "still loading"; ``loading`` alone tracks the bootstrap.
    """

    def __init__(self, auth: AuthClient):
        self.auth = auth
        self.user: Optional[AuthUser] = None
        self.session: Optional[AuthSession] = None
        self.profile: Optional[Profile] = None
        self.loading = True
        self._bootstrap_task: Optional[asyncio.Future] = None

    def set_auth(self, user: Optional[AuthUser], session: Optional[AuthSession]) -> None:
        self.user = user
        self.session = session

    def set_profile(self, profile: Optional[Profile]) -> None:
        self.profile = profile

    def clear(self) -> None:
        self.user = None
        self.session = None
        self.profile = None

    async def sign_out(self) -> None:
        try:
            await self.auth.sign_out()
        except Exception as e:
            logger.error(f"Error signing out: {e}")
        self.clear()

    def reset_lifecycle(self) -> None:
        """Start a new lifecycle so the next bootstrap runs again (after sign-in)."""
        self._bootstrap_task = None
        self.loading = True
        self.clear()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.profile is not None

    @property
    def is_manager(self) -> bool:
        return self.profile is not None and self.profile.role == "manager"

    @property
    def is_approved_manager(self) -> bool:
        return self.is_manager and bool(self.profile and self.profile.is_approved)

    @property
    def access_token(self) -> str:
        return self.session.access_token if self.session else ""

    def require_profile(self) -> Profile:
        if self.user is None or self.profile is None:
            raise AuthError("Not signed in")
        return self.profile

    def require_sector(self) -> tuple[Profile, str]:
        profile = self.require_profile()
        if not profile.sector_id:
            raise AuthError("Profile has no sector")
        return profile, profile.sector_id

    def snapshot(self) -> dict[str, Any]:
        return {
            "user": self.user.model_dump() if self.user else None,
            "profile": self.profile.model_dump() if self.profile else None,
            "loading": self.loading,
            "isAuthenticated": self.is_authenticated,
            "isManager": self.is_manager,
        }


class SessionBootstrapper:
    def __init__(self, store: SessionStore, db: Any):
        self.store = store
        self.db = db

    async def bootstrap(self) -> None:
        if self.store._bootstrap_task is None:
            self.store._bootstrap_task = asyncio.ensure_future(self._run())
        await asyncio.shield(self.store._bootstrap_task)

    async def _run(self) -> None:
        store = self.store
        try:
            try:
                session = await store.auth.get_session()
            except Exception as e:
                logger.error(f"Failed to read session: {e}")
                session = None

            if session is None:
                store.set_auth(None, None)
                store.set_profile(None)
                return

            store.set_auth(session.user, session)

            try:
                row = await get_profile_repository(self.db).get_by_id(session.user.id)
            except Exception as e:
                logger.error(f"Profile lookup failed for {session.user.id}: {e}")
                store.set_profile(None)
                return

            if row is None:
                # Signed-up identity without an approved profile is not an application user.
                logger.warning(f"No profile for user {session.user.id}; signing out")
                await store.sign_out()
                return

            store.set_profile(Profile(**row))
            logger.info(f"Session restored for {store.profile.email or session.user.id}")
        finally:
            store.loading = False

"""Sector invitations created by managers."""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sectorboard import config
from sectorboard.db.factory import get_invitation_repository
from sectorboard.errors import AuthError
from sectorboard.functions import FunctionsClient
from sectorboard.models import Invitation, Profile
from sectorboard.services.base import BaseService, ServiceContext

logger = logging.getLogger("sectorboard.invitations")


def invite_link(token: str) -> str:
    return f"{config.FRONTEND_ORIGIN.rstrip('/')}/auth?token={token}"


class InvitationService(BaseService):
    entity = "invitations"

    def __init__(self, ctx: ServiceContext, functions: FunctionsClient):
        super().__init__(ctx)
        self.functions = functions
        self.invitations: list[Invitation] = []

    def _require_manager(self) -> tuple[Profile, str]:
        profile, sector_id = self.ctx.session.require_sector()
        if not self.ctx.session.is_manager:
            raise AuthError("Only managers can manage invitations")
        return profile, sector_id

    async def refetch(self) -> list[Invitation]:
        if not self.ctx.session.is_manager or self.ctx.session.profile is None:
            self.invitations = []
            return self.invitations
        sector_id = self.ctx.session.profile.sector_id
        if not sector_id:
            self.invitations = []
            return self.invitations
        generation = self._begin_fetch()
        try:
            rows = await get_invitation_repository(self.ctx.db).list_for_sector(sector_id)
        except Exception as e:
            if self._is_current(generation):
                self._query_failed("Could not load invitations", e)
                self.loading = False
            return self.invitations
        if self._is_current(generation):
            self.invitations = [Invitation(**r) for r in rows]
            self.error = None
            self.loading = False
        return self.invitations

    async def create(self, email: str, subsector_id: Optional[str] = None, role: str = "collaborator") -> Optional[Invitation]:
        try:
            profile, sector_id = self._require_manager()
            if "@" not in email:
                raise ValueError(f"invalid email {email!r}")
            expires_at = datetime.now(timezone.utc) + timedelta(days=config.INVITATION_TTL_DAYS)
            row = await get_invitation_repository(self.ctx.db).create({
                "email": email.strip().lower(),
                "token": secrets.token_urlsafe(32),
                "role": role,
                "sector_id": sector_id,
                "subsector_id": subsector_id,
                "invited_by": profile.id,
                "expires_at": expires_at.isoformat(),
            })
        except Exception as e:
            self._mutation_failed("create", "Could not create invitation", e)
            return None

        invitation = Invitation(**row)
        self.invitations = [invitation, *self.invitations]
        self._mutation_succeeded("create")
        await self._send_email(invitation, profile)
        self.ctx.notifier.success("Invitation created", f"An invitation was sent to {invitation.email}.")
        return invitation

    async def _send_email(self, invitation: Invitation, inviter: Profile) -> None:
        # Email delivery never blocks or fails the invitation itself.
        try:
            await self.functions.send_invitation_email(
                self.ctx.session.access_token,
                email=invitation.email,
                invite_link=invite_link(invitation.token),
                inviter_name=inviter.full_name,
            )
        except Exception as e:
            logger.warning(f"Invitation email to {invitation.email} not sent: {e}")

    async def resend(self, invitation_id: str) -> bool:
        try:
            profile, sector_id = self._require_manager()
            row = await get_invitation_repository(self.ctx.db).get_by_id(invitation_id)
            if row is None or row["sector_id"] != sector_id:
                raise LookupError(f"invitation {invitation_id} not found")
            await self.functions.send_invitation_email(
                self.ctx.session.access_token,
                email=row["email"],
                invite_link=invite_link(row["token"]),
                inviter_name=profile.full_name,
            )
        except Exception as e:
            self._mutation_failed("resend", "Could not resend invitation", e)
            return False
        self.ctx.notifier.success("Invitation resent", f"The invitation was resent to {row['email']}.")
        return True

    async def cancel(self, invitation_id: str) -> bool:
        repo = get_invitation_repository(self.ctx.db)
        try:
            _, sector_id = self._require_manager()
            row = await repo.get_by_id(invitation_id)
            if row is None or row["sector_id"] != sector_id or not await repo.delete(invitation_id):
                raise LookupError(f"invitation {invitation_id} not found")
        except Exception as e:
            self._mutation_failed("cancel", "Could not cancel invitation", e)
            return False
        self.invitations = [i for i in self.invitations if i.id != invitation_id]
        self._mutation_succeeded("cancel")
        return True

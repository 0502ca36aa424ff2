"""Client for the backend's serverless endpoints (user deletion, invitation email)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from sectorboard import config
from sectorboard.errors import FunctionCallError

logger = logging.getLogger("sectorboard.functions")


class FunctionsClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url if base_url is not None else config.FUNCTIONS_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.API_KEY
        self.timeout = timeout if timeout is not None else config.FUNCTIONS_TIMEOUT_SECONDS
        self.http = http or requests.Session()

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    def _call(
        self,
        name: str,
        access_token: str,
        params: Optional[dict[str, str]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        if not self.base_url:
            raise FunctionCallError(f"No functions endpoint configured for {name}")
        url = f"{self.base_url}/{name}"
        try:
            res = self.http.post(url, params=params, json=body or {}, headers=self._headers(access_token), timeout=self.timeout)
        except requests.RequestException as e:
            raise FunctionCallError(f"{name} unreachable: {e}") from e

        try:
            payload = res.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}
        if res.status_code >= 400:
            message = payload.get("error") or res.text or f"HTTP {res.status_code}"
            raise FunctionCallError(f"{name} failed: {message}", status_code=res.status_code)
        return payload

    async def invoke(
        self,
        name: str,
        access_token: str,
        params: Optional[dict[str, str]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self._call, name, access_token, params, body)

    async def delete_user(self, user_id: str, access_token: str) -> dict[str, Any]:
        """The endpoint checks manager role and same sector, clears the user's
        assignments, then removes profile, pending record and auth identity."""
        return await self.invoke("delete-user", access_token, params={"userId": user_id})

    async def send_invitation_email(
        self,
        access_token: str,
        *,
        email: str,
        invite_link: str,
        inviter_name: str = "",
        subsector_name: str = "",
    ) -> dict[str, Any]:
        return await self.invoke(
            "send-invitation-email",
            access_token,
            body={
                "email": email,
                "inviterName": inviter_name,
                "inviteLink": invite_link,
                "subsectorName": subsector_name,
            },
        )

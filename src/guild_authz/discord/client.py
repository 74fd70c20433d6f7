"""
guild_authz.discord.client

HTTP client boundary used by the authorization core to call Discord.

Responsibilities:
- Report a user's membership, roles, and native administrator capability in a guild
  (OAuth bearer token of the user).
- List the roles and channels of a guild (bot token).
- Apply a per-request timeout and bounded retries; surface exhaustion as
  `ServiceUnavailableError`.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from guild_authz.authz.errors import ServiceUnavailableError
from guild_authz.authz.models import GuildPermissions
from guild_authz.observability.logging import get_logger
from guild_authz.settings import Settings

log = get_logger(__name__)

ADMINISTRATOR_FLAG = 0x8
ALL_PERMISSIONS_FLAG = 0x80000000


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Discord API responded {response.status_code}")
        self.response = response


def has_administrator_permission(permissions: list[str]) -> bool:
    """
    Discord reports permissions either as names or as integer bitfields (strings).
    ADMINISTRATOR by name, the 0x8 bit, or the all-permissions value all count.
    """

    for permission in permissions:
        if permission == "ADMINISTRATOR":
            return True
        try:
            value = int(permission)
        except ValueError:
            continue
        if value == ALL_PERMISSIONS_FLAG or value & ADMINISTRATOR_FLAG:
            return True
    return False


def _as_permission_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (str, int)):
        return [str(raw)]
    if isinstance(raw, list):
        return [str(p) for p in raw]
    return []


class DiscordApiClient:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        bot_token: str,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 3,
        retry_wait_seconds: float = 0.5,
    ) -> None:
        self._http = http
        self._bot_token = bot_token
        self._timeout = timeout_seconds
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait_seconds

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> DiscordApiClient:
        return cls(
            http=http,
            bot_token=settings.discord_bot_token,
            timeout_seconds=settings.discord_timeout_seconds,
            retry_attempts=settings.discord_retry_attempts,
        )

    async def check_permissions(self, credential: str, guild_id: str) -> GuildPermissions:
        r = await self._get(
            f"/users/@me/guilds/{guild_id}/member",
            headers={"Authorization": f"Bearer {credential}"},
        )
        if r.status_code == 404:
            # Discord answers 404 when the user is not in the guild.
            return GuildPermissions(is_member=False)
        self._raise_for_status(r, what="guild member")

        data = r.json() or {}
        permissions = _as_permission_list(data.get("permissions"))
        roles = tuple(str(role) for role in data.get("roles") or [])
        return GuildPermissions(
            is_member=True,
            roles=roles,
            has_native_admin=has_administrator_permission(permissions),
        )

    async def list_roles(self, guild_id: str) -> list[dict[str, Any]]:
        r = await self._get(f"/guilds/{guild_id}/roles", headers=self._bot_headers())
        self._raise_for_status(r, what="guild roles")
        return list(r.json() or [])

    async def list_channels(self, guild_id: str) -> list[dict[str, Any]]:
        r = await self._get(f"/guilds/{guild_id}/channels", headers=self._bot_headers())
        self._raise_for_status(r, what="guild channels")
        return list(r.json() or [])

    def _bot_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self._bot_token}"}

    async def _get(self, path: str, *, headers: dict[str, str]) -> httpx.Response:
        # Transport errors, timeouts, 429 and 5xx are retried; anything else is returned as-is.
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts + 1),
                wait=wait_exponential(multiplier=self._retry_wait, max=5),
                retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
                reraise=True,
            ):
                with attempt:
                    r = await self._http.get(path, headers=headers, timeout=self._timeout)
                    if r.status_code == 429 or r.status_code >= 500:
                        raise _RetryableStatus(r)
                    return r
        except httpx.TimeoutException as e:
            log.error("discord_request_timeout", path=path, error=str(e))
            raise ServiceUnavailableError("Discord API request timeout") from e
        except httpx.TransportError as e:
            log.error("discord_transport_error", path=path, error=str(e))
            raise ServiceUnavailableError("Discord API unavailable") from e
        except _RetryableStatus as e:
            status = e.response.status_code
            log.error("discord_retries_exhausted", path=path, status=status)
            if status == 429:
                raise ServiceUnavailableError("Discord API rate limited") from e
            raise ServiceUnavailableError("Discord API server error") from e
        raise ServiceUnavailableError("Discord API unavailable")

    def _raise_for_status(self, r: httpx.Response, *, what: str) -> None:
        if r.is_success:
            return
        log.error("discord_api_error", what=what, status=r.status_code)
        if r.status_code == 401:
            raise ServiceUnavailableError("Discord API authentication failed")
        if r.status_code == 403:
            raise ServiceUnavailableError("Discord API access forbidden")
        raise ServiceUnavailableError(f"Discord API error {r.status_code} fetching {what}")


# --- Module Notes -----------------------------------------------------------
# `check_permissions` satisfies `authz.providers.PermissionProvider`; `list_roles` and
# `list_channels` back `discord.cache.RoleChannelCache`.

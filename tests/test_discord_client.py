"""
tests.test_discord_client

Discord HTTP boundary, exercised against `httpx.MockTransport`.

Responsibilities:
- Map member responses to `GuildPermissions` (404 means not a member).
- Recognize native administrator capability in every Discord encoding.
- Retry transient failures and surface exhaustion as `ServiceUnavailableError`.
"""

from __future__ import annotations

import httpx
import pytest

from guild_authz.authz.errors import ServiceUnavailableError
from guild_authz.discord.client import DiscordApiClient, has_administrator_permission


def _client(handler, *, retry_attempts: int = 2) -> DiscordApiClient:
    http = httpx.AsyncClient(
        base_url="https://discord.test/api/v10", transport=httpx.MockTransport(handler)
    )
    return DiscordApiClient(
        http=http,
        bot_token="bot-secret",
        timeout_seconds=1.0,
        retry_attempts=retry_attempts,
        retry_wait_seconds=0,
    )


@pytest.mark.parametrize(
    ("permissions", "expected"),
    [
        (["ADMINISTRATOR"], True),
        (["8"], True),
        (["2147483648"], True),
        (["104324680"], True),  # contains the 0x8 bit
        (["104324672"], False),
        (["SEND_MESSAGES", "not-a-number"], False),
        ([], False),
    ],
)
def test_has_administrator_permission(permissions, expected) -> None:
    assert has_administrator_permission(permissions) is expected


@pytest.mark.asyncio
async def test_check_permissions_member_with_admin_bit() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"roles": ["R1", 22], "permissions": "8"})

    result = await _client(handler).check_permissions("user-oauth", "G1")

    assert result.is_member is True
    assert result.has_native_admin is True
    assert result.roles == ("R1", "22")
    assert seen[0].url.path == "/api/v10/users/@me/guilds/G1/member"
    assert seen[0].headers["Authorization"] == "Bearer user-oauth"


@pytest.mark.asyncio
async def test_check_permissions_member_without_permissions_field() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"roles": ["R1"]})

    result = await _client(handler).check_permissions("tok", "G1")
    assert result.is_member is True
    assert result.has_native_admin is False


@pytest.mark.asyncio
async def test_check_permissions_404_is_not_member() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Unknown Guild"})

    result = await _client(handler).check_permissions("tok", "G1")
    assert result.is_member is False
    assert result.has_native_admin is False


@pytest.mark.asyncio
async def test_unauthorized_is_service_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    with pytest.raises(ServiceUnavailableError):
        await _client(handler).check_permissions("expired", "G1")


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_exhausted() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    with pytest.raises(ServiceUnavailableError):
        await _client(handler, retry_attempts=2).check_permissions("tok", "G1")
    assert calls == 3


@pytest.mark.asyncio
async def test_transient_failure_recovers() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("reset", request=request)
        if calls == 2:
            return httpx.Response(429)
        return httpx.Response(200, json=[{"id": "R1", "name": "Admin"}])

    roles = await _client(handler, retry_attempts=3).list_roles("G1")
    assert roles == [{"id": "R1", "name": "Admin"}]
    assert calls == 3


@pytest.mark.asyncio
async def test_timeouts_exhaust_to_service_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ServiceUnavailableError, match="timeout"):
        await _client(handler, retry_attempts=1).list_channels("G1")


@pytest.mark.asyncio
async def test_listing_uses_bot_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "C1", "name": "general", "type": 0}])

    channels = await _client(handler).list_channels("G1")

    assert channels[0]["id"] == "C1"
    assert seen[0].url.path == "/api/v10/guilds/G1/channels"
    assert seen[0].headers["Authorization"] == "Bot bot-secret"

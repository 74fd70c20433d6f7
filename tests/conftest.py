"""
tests.conftest

Shared fixtures and in-memory fakes for the authorization core.

Responsibilities:
- Provide a throwaway SQLite database per test.
- Provide fake collaborators that record calls, so tests can assert which steps ran.
"""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from guild_authz.authz.engine import AuthorizationEngine
from guild_authz.authz.models import Decision, GuildPermissions, MembershipRecord
from guild_authz.authz.policy import RolePolicyEvaluator
from guild_authz.authz.providers import default_guild_settings
from guild_authz.db.init_db import init_db
from guild_authz.db.session import create_sessionmaker
from guild_authz.discord.cache import RoleChannelCache


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'authz.db'}")
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


class FakeTokens:
    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self.tokens = dict(tokens or {})
        self.calls: list[str] = []

    async def get_valid_access_token(self, principal_id: str) -> str | None:
        self.calls.append(principal_id)
        return self.tokens.get(principal_id)


class FakePermissions:
    def __init__(
        self, result: GuildPermissions | None = None, error: Exception | None = None
    ) -> None:
        self.result = result or GuildPermissions(is_member=True)
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def check_permissions(self, credential: str, guild_id: str) -> GuildPermissions:
        self.calls.append((credential, guild_id))
        if self.error is not None:
            raise self.error
        return self.result


class FakeGuildSettings:
    def __init__(self, settings: dict[str, Any] | None = None) -> None:
        self.settings = settings
        self.calls: list[str] = []

    async def get_settings(self, guild_id: str) -> dict[str, Any]:
        self.calls.append(guild_id)
        return self.settings if self.settings is not None else default_guild_settings()


class FakeMemberships:
    def __init__(self, roles_by_key: dict[tuple[str, str], list[str]] | None = None) -> None:
        self.roles_by_key = dict(roles_by_key or {})
        self.calls: list[tuple[str, str]] = []

    async def find_membership(self, principal_id: str, guild_id: str) -> MembershipRecord | None:
        self.calls.append((principal_id, guild_id))
        roles = self.roles_by_key.get((principal_id, guild_id))
        if roles is None:
            return None
        return MembershipRecord(user_id=principal_id, guild_id=guild_id, roles=tuple(roles))


class FakeRoleSource:
    def __init__(
        self,
        roles: list[str] | None = None,
        channels: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.roles = list(roles or [])
        self.channels = list(channels or [])
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def list_roles(self, guild_id: str) -> list[dict[str, Any]]:
        self.calls.append(("roles", guild_id))
        if self.error is not None:
            raise self.error
        return [{"id": r, "name": f"role-{r}"} for r in self.roles]

    async def list_channels(self, guild_id: str) -> list[dict[str, Any]]:
        self.calls.append(("channels", guild_id))
        if self.error is not None:
            raise self.error
        return [{"id": c, "name": f"chan-{c}", "type": 0} for c in self.channels]


class CapturingRecorder:
    def __init__(self) -> None:
        self.decisions: list[Decision] = []

    async def record(self, decision: Decision) -> None:
        self.decisions.append(decision)

    def record_detached(self, decision: Decision) -> None:
        self.decisions.append(decision)


class Harness:
    """Bundles an engine with the fakes it was built from."""

    def __init__(self, **overrides: Any) -> None:
        self.tokens = overrides.pop("tokens", FakeTokens({"u1": "tok-u1"}))
        self.permissions = overrides.pop("permissions", FakePermissions())
        self.guild_settings = overrides.pop("guild_settings", FakeGuildSettings())
        self.memberships = overrides.pop("memberships", FakeMemberships())
        self.role_source = overrides.pop("role_source", FakeRoleSource())
        self.recorder = overrides.pop("recorder", CapturingRecorder())
        self.cache = RoleChannelCache(source=self.role_source)
        self.engine = AuthorizationEngine(
            tokens=self.tokens,
            permissions=self.permissions,
            guild_settings=self.guild_settings,
            memberships=self.memberships,
            evaluator=RolePolicyEvaluator(cache=self.cache),
            recorder=self.recorder,
            detach_audit=overrides.pop("detach_audit", False),
            decision_timeout_seconds=overrides.pop("decision_timeout_seconds", 5.0),
            ownership_service_bypass=overrides.pop("ownership_service_bypass", True),
        )
        assert not overrides, f"unknown overrides: {sorted(overrides)}"


@pytest.fixture
def harness():
    return Harness

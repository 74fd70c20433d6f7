"""
guild_authz.authz.providers

Collaborator protocols consumed by the decision engine, plus SQL-backed adapters.

Responsibilities:
- Define the capabilities the engine depends on (token, remote permissions,
  guild settings, stored membership).
- Provide default adapters over the persistence layer, each opening its own
  short-lived session.
- Provision default guild settings on first read and normalize admin roles on write.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guild_authz.authz.models import GuildPermissions, MembershipRecord
from guild_authz.authz.policy import admin_roles_as_objects
from guild_authz.db.repositories.guild_members import GuildMemberRepo
from guild_authz.db.repositories.guild_settings import GuildSettingsRepo
from guild_authz.db.repositories.user_tokens import UserTokenRepo
from guild_authz.db.session import transaction
from guild_authz.observability.logging import get_logger

log = get_logger(__name__)

CURRENT_CONFIG_VERSION = "1.0.0"
CURRENT_SCHEMA_VERSION = 1


class TokenProvider(Protocol):
    async def get_valid_access_token(self, principal_id: str) -> str | None: ...


class PermissionProvider(Protocol):
    async def check_permissions(self, credential: str, guild_id: str) -> GuildPermissions: ...


class GuildSettingsProvider(Protocol):
    async def get_settings(self, guild_id: str) -> dict[str, Any]: ...


class MembershipStore(Protocol):
    async def find_membership(self, principal_id: str, guild_id: str) -> MembershipRecord | None: ...


def default_guild_settings() -> dict[str, Any]:
    return {
        "_metadata": {
            "version": CURRENT_CONFIG_VERSION,
            "schemaVersion": CURRENT_SCHEMA_VERSION,
        },
        "bot_command_channels": [],  # empty = listen on all channels
        "register_command_channels": [],  # empty = fall back to bot_command_channels
        "roles": {
            "admin": [],
            "moderator": [],
            "member": [],
            "league_manager": [],
            "tournament_manager": [],
        },
    }


def merge_with_defaults(stored: Mapping[str, Any] | None) -> dict[str, Any]:
    merged = default_guild_settings()
    if not stored:
        return merged
    for key, value in stored.items():
        if key in ("roles", "_metadata") and isinstance(value, Mapping):
            merged[key] = {**merged[key], **copy.deepcopy(dict(value))}
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class SqlTokenProvider:
    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_valid_access_token(self, principal_id: str) -> str | None:
        async with self._session_factory() as session:
            row = await UserTokenRepo(session).get(principal_id)
        if row is None or not row.access_token:
            return None
        now = datetime.now(UTC).replace(tzinfo=None)
        if row.expires_at is not None and row.expires_at <= now:
            # Refresh is owned by the OAuth flow; an expired token is simply unavailable here.
            log.info("access_token_expired", user_id=principal_id)
            return None
        return row.access_token


class SqlGuildSettingsProvider:
    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_settings(self, guild_id: str) -> dict[str, Any]:
        async with self._session_factory() as session:
            row = await GuildSettingsRepo(session).get(guild_id)
        if row is not None:
            return merge_with_defaults(row.settings)

        defaults = default_guild_settings()
        try:
            async with transaction(self._session_factory) as session:
                await GuildSettingsRepo(session).create(guild_id=guild_id, settings=defaults)
            log.info("guild_settings_provisioned", guild_id=guild_id)
            return defaults
        except IntegrityError:
            # Lost a concurrent first-access race; the winner's row is authoritative.
            async with self._session_factory() as session:
                row = await GuildSettingsRepo(session).get(guild_id)
            if row is None:
                raise
            return merge_with_defaults(row.settings)

    async def set_admin_roles(
        self, guild_id: str, roles: Iterable[str | Mapping[str, Any]]
    ) -> dict[str, Any]:
        admin = admin_roles_as_objects(roles)
        # Read-modify-write under one transaction and row lock so concurrent edits of
        # other settings keys are not overwritten with a stale copy.
        async with transaction(self._session_factory) as session:
            repo = GuildSettingsRepo(session)
            row = await repo.get(guild_id, for_update=True)
            current = merge_with_defaults(row.settings if row is not None else None)
            current["roles"]["admin"] = admin
            await repo.save(guild_id=guild_id, settings=current)
        log.info("guild_admin_roles_updated", guild_id=guild_id, count=len(current["roles"]["admin"]))
        return current


class SqlMembershipStore:
    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_membership(self, principal_id: str, guild_id: str) -> MembershipRecord | None:
        async with self._session_factory() as session:
            row = await GuildMemberRepo(session).find(user_id=principal_id, guild_id=guild_id)
        if row is None:
            return None
        return MembershipRecord(
            user_id=row.user_id,
            guild_id=row.guild_id,
            roles=tuple(str(r) for r in row.roles or []),
        )


# --- Module Notes -----------------------------------------------------------
# `discord.client.DiscordApiClient` satisfies `PermissionProvider`. Any of these adapters
# may raise; the engine's top-level handler converts such failures into a denial.

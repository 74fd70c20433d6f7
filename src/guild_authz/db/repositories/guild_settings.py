"""
guild_authz.db.repositories.guild_settings

Repository for `GuildSettings` entities.

Responsibilities:
- Load a guild's policy document, optionally locking the row for a read-modify-write.
- Create and replace policy documents.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.db.models import GuildSettings


class GuildSettingsRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, guild_id: str, *, for_update: bool = False) -> GuildSettings | None:
        if for_update:
            # populate_existing: re-read under the lock even if the row is already loaded.
            return await self._session.get(
                GuildSettings, guild_id, with_for_update=True, populate_existing=True
            )
        return await self._session.get(GuildSettings, guild_id)

    async def create(self, *, guild_id: str, settings: dict[str, Any]) -> GuildSettings:
        row = GuildSettings(guild_id=guild_id, settings=settings)
        self._session.add(row)
        await self._session.flush()
        return row

    async def save(self, *, guild_id: str, settings: dict[str, Any]) -> GuildSettings:
        row = await self.get(guild_id, for_update=True)
        if row is None:
            return await self.create(guild_id=guild_id, settings=settings)
        # Reassign (not mutate) so the JSON column is flagged dirty.
        row.settings = settings
        await self._session.flush()
        return row


# --- Module Notes -----------------------------------------------------------
# Row locks are a no-op on SQLite (single writer); on Postgres they serialize updates.

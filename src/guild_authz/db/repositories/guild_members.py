"""
guild_authz.db.repositories.guild_members

Repository for `GuildMember` entities.

Responsibilities:
- Look up a user's locally synced role snapshot in a guild.
- Upsert snapshots from the member sync.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.db.models import GuildMember


class GuildMemberRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find(self, *, user_id: str, guild_id: str) -> GuildMember | None:
        return await self._session.get(GuildMember, (user_id, guild_id))

    async def upsert(self, *, user_id: str, guild_id: str, roles: list[str]) -> GuildMember:
        # Used by the out-of-band member sync; the authorization path only reads.
        row = await self._session.get(GuildMember, (user_id, guild_id))
        if row is None:
            row = GuildMember(user_id=user_id, guild_id=guild_id, roles=list(roles))
            self._session.add(row)
        else:
            row.roles = list(roles)
        await self._session.flush()
        return row


# --- Module Notes -----------------------------------------------------------
# Absence of a row is meaningful: the engine treats it as "not a member".

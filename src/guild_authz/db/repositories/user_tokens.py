"""
guild_authz.db.repositories.user_tokens

Repository for `UserToken` entities.

Responsibilities:
- Read the stored OAuth access token of a user.
- Upsert tokens on behalf of the OAuth flow (and tests).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.db.models import UserToken


class UserTokenRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> UserToken | None:
        return await self._session.get(UserToken, user_id)

    async def upsert(
        self, *, user_id: str, access_token: str | None, expires_at: datetime | None
    ) -> UserToken:
        row = await self._session.get(UserToken, user_id)
        if row is None:
            row = UserToken(user_id=user_id, access_token=access_token, expires_at=expires_at)
            self._session.add(row)
        else:
            row.access_token = access_token
            row.expires_at = expires_at
        await self._session.flush()
        return row


# --- Module Notes -----------------------------------------------------------
# Expiry is interpreted by `authz.providers.SqlTokenProvider`; this layer stores it verbatim.

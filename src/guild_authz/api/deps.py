"""
guild_authz.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for DB sessions.
- Encapsulate app.state access patterns (sessionmaker, settings provider).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guild_authz.authz.providers import SqlGuildSettingsProvider


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


def guild_settings_from_app(request: Request) -> SqlGuildSettingsProvider:
    return request.app.state.guild_settings  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped read session; writes go through explicit transaction scopes.
    async with session_factory() as session:
        yield session

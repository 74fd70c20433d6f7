"""
guild_authz.db.repositories.audit

Repository for `ActivityLog` entities.

Responsibilities:
- Append audit events (authorization decisions and other guarded activity).
- Query the audit trail of a guild for forensic review.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.db.models import ActivityLog


def _as_naive_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC (see `db.models._utcnow`).
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class AuditLogRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def log_activity(
        self,
        *,
        entity_type: str,
        entity_id: str,
        event_type: str,
        action: str,
        user_id: str | None = None,
        guild_id: str | None = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLog:
        # Append-only: there is no update/delete counterpart.
        ev = ActivityLog(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            action=action,
            user_id=user_id,
            guild_id=guild_id,
            changes=dict(changes or {}),
            meta=dict(metadata or {}),
        )
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def query(
        self,
        *,
        guild_id: str | None = None,
        user_id: str | None = None,
        event_type: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ActivityLog], int]:
        filters = []
        if guild_id is not None:
            filters.append(ActivityLog.guild_id == guild_id)
        if user_id is not None:
            filters.append(ActivityLog.user_id == user_id)
        if event_type is not None:
            filters.append(ActivityLog.event_type == event_type)
        if action is not None:
            filters.append(ActivityLog.action == action)
        if start is not None:
            filters.append(ActivityLog.created_at >= _as_naive_utc(start))
        if end is not None:
            filters.append(ActivityLog.created_at <= _as_naive_utc(end))

        total = (
            await self._session.execute(select(func.count()).select_from(ActivityLog).where(*filters))
        ).scalar_one()

        # Newest-first for UI consumption.
        stmt = (
            select(ActivityLog)
            .where(*filters)
            .order_by(desc(ActivityLog.created_at))
            .limit(limit)
            .offset(offset)
        )
        rows = list((await self._session.execute(stmt)).scalars().all())
        return rows, int(total)


# --- Module Notes -----------------------------------------------------------
# Writes happen inside `db.session.transaction` scopes owned by `audit.recorder`.

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.api.deps import db_session, guild_settings_from_app
from guild_authz.auth.deps import require_guild_admin
from guild_authz.authz.models import Decision
from guild_authz.authz.providers import SqlGuildSettingsProvider
from guild_authz.db.models import ActivityLog
from guild_authz.db.repositories.audit import AuditLogRepo

router = APIRouter(prefix="/v1/guilds", tags=["guilds"])


class AuditLogItem(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    event_type: str
    action: str
    user_id: str | None
    guild_id: str | None
    changes: dict[str, Any]
    metadata: dict[str, Any]
    created_at: datetime


class AuditLogPage(BaseModel):
    logs: list[AuditLogItem] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


def audit_page(rows: list[ActivityLog], total: int, *, limit: int, offset: int) -> AuditLogPage:
    return AuditLogPage(
        logs=[
            AuditLogItem(
                id=str(r.id),
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                event_type=r.event_type,
                action=r.action,
                user_id=r.user_id,
                guild_id=r.guild_id,
                changes=r.changes,
                metadata=r.meta,
                created_at=r.created_at,
            )
            for r in rows
        ],
        total=total,
        limit=limit,
        offset=offset,
    )


class AdminRoleIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str | None = None


class AdminRolesUpdate(BaseModel):
    # Accepts both encodings on input; storage always uses the object form.
    roles: list[str | AdminRoleIn] = Field(default_factory=list)


@router.get("/{guild_id}/audit-logs", response_model=AuditLogPage)
async def list_audit_logs(
    guild_id: str,
    user_id: str | None = None,
    event_type: str | None = None,
    action: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _decision: Decision = Depends(require_guild_admin("admin.audit_logs.read")),
    session: AsyncSession = Depends(db_session),
) -> AuditLogPage:
    rows, total = await AuditLogRepo(session).query(
        guild_id=guild_id,
        user_id=user_id,
        event_type=event_type,
        action=action,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return audit_page(rows, total, limit=limit, offset=offset)


@router.put("/{guild_id}/settings/admin-roles")
async def update_admin_roles(
    guild_id: str,
    body: AdminRolesUpdate,
    _decision: Decision = Depends(require_guild_admin("admin.settings.update")),
    provider: SqlGuildSettingsProvider = Depends(guild_settings_from_app),
) -> dict[str, Any]:
    raw = [r if isinstance(r, str) else r.model_dump(exclude_none=True) for r in body.roles]
    settings = await provider.set_admin_roles(guild_id, raw)
    return {"guild_id": guild_id, "admin_roles": settings["roles"]["admin"]}

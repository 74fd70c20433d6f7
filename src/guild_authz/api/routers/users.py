from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.api.deps import db_session
from guild_authz.api.routers.guilds import AuditLogPage, audit_page
from guild_authz.auth.deps import require_resource_owner
from guild_authz.authz.models import Decision
from guild_authz.db.repositories.audit import AuditLogRepo

router = APIRouter(prefix="/v1/users", tags=["users"])


@router.get("/{user_id}/audit-logs", response_model=AuditLogPage)
async def list_user_audit_logs(
    user_id: str,
    guild_id: str | None = None,
    event_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _decision: Decision = Depends(require_resource_owner("resource.audit_logs.read")),
    session: AsyncSession = Depends(db_session),
) -> AuditLogPage:
    # A user's own activity across guilds; service identities may read any user's trail.
    rows, total = await AuditLogRepo(session).query(
        guild_id=guild_id,
        user_id=user_id,
        event_type=event_type,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return audit_page(rows, total, limit=limit, offset=offset)

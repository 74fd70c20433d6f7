"""
guild_authz.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`): DB connectivity plus the audit write backlog.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from guild_authz.api.deps import db_session

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request, session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    await session.execute(text("SELECT 1"))
    recorder = request.app.state.audit_recorder
    return {"status": "ready", "pending_audits": recorder.pending}

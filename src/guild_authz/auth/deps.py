"""
guild_authz.auth.deps

FastAPI dependency functions for authentication and guild authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Run the decision engine for guild-scoped and user-scoped routes and map outcomes
  to HTTP errors.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from guild_authz.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from guild_authz.authz.engine import ADMIN_CHECK, OWNERSHIP_CHECK, AuthorizationEngine
from guild_authz.authz.errors import AuthorizationConfigError
from guild_authz.authz.models import Decision, Principal, PrincipalKind, RequestContext
from guild_authz.settings import Settings, get_settings

_bearer = HTTPBearer(auto_error=False)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    if not subject:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    if payload.get("typ") == PrincipalKind.service:
        return Principal.service(subject)
    return Principal(id=subject, kind=PrincipalKind.human, display_name=payload.get("name"))


def engine_from_app(request: Request) -> AuthorizationEngine:
    # Built once on app startup in `guild_authz.api.app.create_app`.
    return request.app.state.authz_engine  # type: ignore[attr-defined]


def require_guild_admin(action: str = ADMIN_CHECK):
    async def _dep(
        request: Request,
        guild_id: str,
        principal: Principal = Depends(get_principal),
        engine: AuthorizationEngine = Depends(engine_from_app),
    ) -> Decision:
        try:
            decision = await engine.decide(
                principal, guild_id, RequestContext.from_request(request), action=action
            )
        except AuthorizationConfigError as e:
            raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=str(e)) from e
        if not decision.allowed:
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail=str(decision.reason))
        return decision

    return _dep


def require_resource_owner(action: str = OWNERSHIP_CHECK):
    async def _dep(
        request: Request,
        user_id: str,
        principal: Principal = Depends(get_principal),
        engine: AuthorizationEngine = Depends(engine_from_app),
    ) -> Decision:
        try:
            decision = await engine.decide_ownership(
                principal, user_id, RequestContext.from_request(request), action=action
            )
        except AuthorizationConfigError as e:
            raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=str(e)) from e
        if not decision.allowed:
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail=str(decision.reason))
        return decision

    return _dep


# --- Module Notes) -----------------------------------------------------------
# The engine has already recorded the decision (detached) by the time a 403 is raised.

"""
guild_authz.authz.models

Authorization domain models.

Responsibilities:
- Define the acting identity (`Principal`) and the requester metadata captured for audit.
- Define the ephemeral `Decision` produced by the engine and its enumerated reasons.
- Define the value types returned by the engine's collaborators.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from starlette.requests import Request


class PrincipalKind(enum.StrEnum):
    human = "human"
    service = "service"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated actor. Human identities are Discord users; service identities
    are trusted bots and carry no profile.
    """

    id: str
    kind: PrincipalKind = PrincipalKind.human
    display_name: str | None = None
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def is_service(self) -> bool:
        return self.kind is PrincipalKind.service

    @classmethod
    def service(cls, id: str) -> Principal:
        return cls(id=id, kind=PrincipalKind.service)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Requester metadata attached to every audit event."""

    resource: str = "unknown"
    method: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        # Behind a proxy, uvicorn has already resolved the client from trusted X-Forwarded-For.
        ip = request.client.host if request.client else None
        request_id = getattr(request.state, "request_id", None) or request.headers.get(
            "x-request-id"
        )
        return cls(
            resource=request.url.path or "unknown",
            method=request.method,
            ip_address=ip,
            user_agent=request.headers.get("user-agent"),
            request_id=request_id,
        )

    def as_metadata(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "resource": self.resource,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "requestId": self.request_id,
        }


class DecisionResult(enum.StrEnum):
    allowed = "allowed"
    denied = "denied"


class DecisionReason(enum.StrEnum):
    # Stored verbatim in audit metadata; treat as a stable contract.
    service_identity = "service_identity"
    no_access_token = "no_access_token"
    not_a_member = "not_a_member"
    native_administrator_permission = "native_administrator_permission"
    no_admin_roles_configured = "no_admin_roles_configured"
    configured_admin_role = "configured_admin_role"
    no_admin_access = "no_admin_access"
    error_checking_permissions = "error_checking_permissions"
    resource_owner = "resource_owner"
    not_resource_owner = "not_resource_owner"


@dataclass(frozen=True, slots=True)
class Decision:
    principal: Principal
    guild_id: str | None
    action: str
    result: DecisionResult
    reason: DecisionReason
    context: RequestContext = field(default_factory=RequestContext)
    matched_role_id: str | None = None
    resource_user_id: str | None = None
    decided_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def allowed(self) -> bool:
        return self.result is DecisionResult.allowed


@dataclass(frozen=True, slots=True)
class GuildPermissions:
    is_member: bool
    roles: tuple[str, ...] = ()
    has_native_admin: bool = False


@dataclass(frozen=True, slots=True)
class MembershipRecord:
    user_id: str
    guild_id: str
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AdminRole:
    id: str
    name: str = "Admin"


# --- Module Notes -----------------------------------------------------------
# `Decision` is never persisted as-is; `audit.recorder` projects it into an ActivityLog row.

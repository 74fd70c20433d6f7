"""
guild_authz.audit.recorder

Durable, non-blocking recording of authorization decisions.

Responsibilities:
- Classify each decision's action into a closed set of storage categories.
- Persist the decision's audit projection inside a transaction scoped to that write.
- Never propagate a recording failure to the caller (log and swallow).
- Offer a detached mode: the write runs as a tracked background task.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guild_authz.authz.models import Decision
from guild_authz.db.repositories.audit import AuditLogRepo
from guild_authz.db.session import transaction
from guild_authz.observability.logging import get_logger

log = get_logger(__name__)


class AuditCategory(enum.StrEnum):
    admin = "admin"
    resource = "resource"
    permission = "permission"
    activity = "activity"


@dataclass(frozen=True, slots=True)
class CategoryMapping:
    entity_type: AuditCategory
    event_type: str


_ADMIN = CategoryMapping(AuditCategory.admin, "ADMIN_ACTION")
_OWNERSHIP = CategoryMapping(AuditCategory.resource, "OWNERSHIP_CHECK")
_PERMISSION = CategoryMapping(AuditCategory.permission, "PERMISSION_CHECK")
_FALLBACK = CategoryMapping(AuditCategory.activity, "ACTIVITY")

# Action name prefixes; first match wins.
_PREFIXES: tuple[tuple[str, CategoryMapping], ...] = (
    ("admin.", _ADMIN),
    ("system_admin.", _ADMIN),
    ("ownership.", _OWNERSHIP),
    ("resource.", _OWNERSHIP),
    ("permission.", _PERMISSION),
    ("member.", _PERMISSION),
)


def classify_action(action: str) -> CategoryMapping:
    for prefix, mapping in _PREFIXES:
        if action.startswith(prefix):
            return mapping
    return _FALLBACK


def decision_to_activity(decision: Decision) -> dict[str, Any]:
    """Project a decision into `AuditLogRepo.log_activity` keyword arguments."""

    mapping = classify_action(decision.action)
    principal = decision.principal
    metadata: dict[str, Any] = {
        **decision.context.as_metadata(),
        "reason": str(decision.reason),
        "principalKind": str(principal.kind),
        "decidedAt": decision.decided_at.isoformat(),
    }
    if principal.is_service:
        metadata["serviceId"] = principal.id
    if decision.matched_role_id is not None:
        metadata["matchedRoleId"] = decision.matched_role_id
    if decision.resource_user_id is not None:
        metadata["resourceUserId"] = decision.resource_user_id
    if mapping.entity_type is AuditCategory.admin:
        metadata["adminAction"] = True

    return {
        "entity_type": str(mapping.entity_type),
        "entity_id": decision.context.resource or "unknown",
        "event_type": mapping.event_type,
        "action": decision.action,
        "user_id": None if principal.is_service else principal.id,
        "guild_id": decision.guild_id,
        "changes": {"result": str(decision.result)},
        "metadata": metadata,
    }


class AuditRecorder:
    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._pending: set[asyncio.Task[None]] = set()

    async def record(self, decision: Decision) -> None:
        try:
            activity = decision_to_activity(decision)
            async with transaction(self._session_factory) as session:
                await AuditLogRepo(session).log_activity(**activity)
        except Exception as e:
            # Audit is observability, not a correctness gate: the decision stands.
            log.error(
                "audit_record_failed",
                principal_id=decision.principal.id,
                guild_id=decision.guild_id,
                action=decision.action,
                result=str(decision.result),
                reason=str(decision.reason),
                error=str(e),
                exc_info=True,
            )

    def record_detached(self, decision: Decision) -> asyncio.Task[None]:
        """
        Fire-and-forget: at most one write attempt, observed only through logs.
        The task is held until completion so it cannot be garbage collected mid-write.
        """

        task = asyncio.create_task(self.record(decision), name=f"audit:{decision.action}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        # Used on shutdown and in tests; `record` never raises so gather is safe.
        if self._pending:
            await asyncio.gather(*list(self._pending))


# --- Module Notes -----------------------------------------------------------
# Callers must not rely on audit completeness for enforcement: a failed write and a
# missing write look the same from outside.

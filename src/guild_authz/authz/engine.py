"""
guild_authz.authz.engine

Authorization decision engine for privileged guild operations.

Responsibilities:
- Reconcile Discord's live permission model, the stored guild policy, and the
  locally synced membership snapshot into a single allow/deny decision.
- Apply the fail-open bootstrap rule for guilds with no admin roles configured.
- Fail closed on any unexpected error or when the decision budget is exceeded.
- Decide resource ownership (principal acting on its own user resources).
- Emit exactly one decision to the audit recorder per call.
"""

from __future__ import annotations

import asyncio
from typing import NamedTuple

from guild_authz.audit.recorder import AuditRecorder
from guild_authz.authz.errors import AccessDeniedError, AuthorizationConfigError
from guild_authz.authz.models import (
    Decision,
    DecisionReason,
    DecisionResult,
    Principal,
    RequestContext,
)
from guild_authz.authz.policy import RolePolicyEvaluator, admin_roles_configured
from guild_authz.authz.providers import (
    GuildSettingsProvider,
    MembershipStore,
    PermissionProvider,
    TokenProvider,
)
from guild_authz.observability.logging import get_logger

log = get_logger(__name__)

ADMIN_CHECK = "admin.check"
OWNERSHIP_CHECK = "resource.ownership.check"


class _Outcome(NamedTuple):
    result: DecisionResult
    reason: DecisionReason
    matched_role_id: str | None = None


def _allow(reason: DecisionReason, matched_role_id: str | None = None) -> _Outcome:
    return _Outcome(DecisionResult.allowed, reason, matched_role_id)


def _deny(reason: DecisionReason) -> _Outcome:
    return _Outcome(DecisionResult.denied, reason)


class AuthorizationEngine:
    """
    Steps are strictly sequential: each later step is reached only when the earlier
    ones produced no terminal outcome.

    Service identities get no special treatment on the admin path: they hold no
    OAuth token and are denied at the token step. Only ownership decisions may
    let them through (`ownership_service_bypass`).
    """

    def __init__(
        self,
        *,
        tokens: TokenProvider,
        permissions: PermissionProvider,
        guild_settings: GuildSettingsProvider,
        memberships: MembershipStore,
        evaluator: RolePolicyEvaluator,
        recorder: AuditRecorder,
        detach_audit: bool = True,
        decision_timeout_seconds: float | None = 30.0,
        ownership_service_bypass: bool = True,
    ) -> None:
        self._tokens = tokens
        self._permissions = permissions
        self._guild_settings = guild_settings
        self._memberships = memberships
        self._evaluator = evaluator
        self._recorder = recorder
        self._detach_audit = detach_audit
        self._timeout = decision_timeout_seconds or None
        self._ownership_bypass = ownership_service_bypass

    async def decide(
        self,
        principal: Principal | None,
        guild_id: str | None,
        context: RequestContext | None = None,
        *,
        action: str = ADMIN_CHECK,
    ) -> Decision:
        if principal is None or not principal.id or not guild_id:
            # Caller-contract violation: not an authorization outcome, so never audited.
            log.warning("authorization_missing_input", has_principal=principal is not None)
            raise AuthorizationConfigError("principal and guild_id are required")

        context = context or RequestContext()
        try:
            async with asyncio.timeout(self._timeout):
                outcome = await self._evaluate(principal, guild_id)
        except Exception as e:
            # The only place an unexpected failure becomes a denial (fail closed).
            log.error(
                "authorization_check_error",
                principal_id=principal.id,
                guild_id=guild_id,
                action=action,
                error=repr(e),
                exc_info=True,
            )
            outcome = _deny(DecisionReason.error_checking_permissions)

        return await self._finish(principal, guild_id, action, outcome, context)

    async def require(
        self,
        principal: Principal | None,
        guild_id: str | None,
        context: RequestContext | None = None,
        *,
        action: str = ADMIN_CHECK,
    ) -> Decision:
        decision = await self.decide(principal, guild_id, context, action=action)
        if not decision.allowed:
            raise AccessDeniedError(decision)
        return decision

    async def decide_ownership(
        self,
        principal: Principal | None,
        resource_user_id: str | None,
        context: RequestContext | None = None,
        *,
        guild_id: str | None = None,
        action: str = OWNERSHIP_CHECK,
    ) -> Decision:
        """
        Allow a principal to act on resources belonging to its own user id.

        No remote calls are made. Service identities pass when the ownership bypass
        is enabled; the pass is still audited.
        """

        if principal is None or not principal.id or not resource_user_id:
            log.warning("ownership_missing_input", has_principal=principal is not None)
            raise AuthorizationConfigError("principal and resource_user_id are required")

        if principal.is_service and self._ownership_bypass:
            log.info("service_identity_bypass", service_id=principal.id, action=action)
            outcome = _allow(DecisionReason.service_identity)
        elif principal.id == resource_user_id:
            outcome = _allow(DecisionReason.resource_owner)
        else:
            log.warning(
                "not_resource_owner", principal_id=principal.id, resource_user_id=resource_user_id
            )
            outcome = _deny(DecisionReason.not_resource_owner)

        return await self._finish(
            principal,
            guild_id,
            action,
            outcome,
            context or RequestContext(),
            resource_user_id=resource_user_id,
        )

    async def _evaluate(self, principal: Principal, guild_id: str) -> _Outcome:
        credential = await self._tokens.get_valid_access_token(principal.id)
        if not credential:
            log.warning("no_access_token", principal_id=principal.id)
            return _deny(DecisionReason.no_access_token)

        remote = await self._permissions.check_permissions(credential, guild_id)
        if not remote.is_member:
            return _deny(DecisionReason.not_a_member)
        if remote.has_native_admin:
            log.info("native_administrator", principal_id=principal.id, guild_id=guild_id)
            return _allow(DecisionReason.native_administrator_permission)

        policy = await self._guild_settings.get_settings(guild_id)
        if not admin_roles_configured(policy):
            # Fail-open bootstrap: any member may act until someone configures admin roles.
            log.warning("no_admin_roles_configured", guild_id=guild_id, principal_id=principal.id)
            return _allow(DecisionReason.no_admin_roles_configured)

        membership = await self._memberships.find_membership(principal.id, guild_id)
        if membership is None:
            # Discord says member, local snapshot disagrees (sync lag): stay conservative.
            log.warning("membership_not_synced", principal_id=principal.id, guild_id=guild_id)
            return _deny(DecisionReason.not_a_member)

        matched = await self._evaluator.resolve_admin_role(
            membership.roles, guild_id, policy, validate_with_remote=True
        )
        if matched is None:
            log.warning("no_admin_access", principal_id=principal.id, guild_id=guild_id)
            return _deny(DecisionReason.no_admin_access)
        return _allow(DecisionReason.configured_admin_role, matched)

    async def _finish(
        self,
        principal: Principal,
        guild_id: str | None,
        action: str,
        outcome: _Outcome,
        context: RequestContext,
        *,
        resource_user_id: str | None = None,
    ) -> Decision:
        decision = Decision(
            principal=principal,
            guild_id=guild_id,
            action=action,
            result=outcome.result,
            reason=outcome.reason,
            context=context,
            matched_role_id=outcome.matched_role_id,
            resource_user_id=resource_user_id,
        )
        if self._detach_audit:
            self._recorder.record_detached(decision)
        else:
            await self._recorder.record(decision)
        return decision


# --- Module Notes -----------------------------------------------------------
# Inner collaborators let unexpected errors propagate; only `decide` converts them.
# The audit write is detached by default so recording latency never delays the caller.

"""
guild_authz.authz.policy

Role policy evaluation.

Responsibilities:
- Normalize the two historical encodings of `roles.admin` into `AdminRole` values.
- Match a principal's stored roles against the configured admin roles.
- Optionally confirm the matched role still exists on Discord before accepting it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from guild_authz.authz.models import AdminRole
from guild_authz.discord.cache import IdKind, RoleChannelCache
from guild_authz.observability.logging import get_logger

log = get_logger(__name__)


def normalize_admin_roles(policy: Mapping[str, Any] | None) -> list[AdminRole]:
    """
    Accepts `roles.admin` as either `["R1", ...]` (legacy) or
    `[{"id": "R1", "name": "..."}, ...]`. Malformed entries are skipped.
    """

    if not policy:
        return []
    roles = policy.get("roles")
    if not isinstance(roles, Mapping):
        return []
    raw = roles.get("admin")
    if not isinstance(raw, list):
        return []

    out: list[AdminRole] = []
    for entry in raw:
        if isinstance(entry, str) and entry:
            out.append(AdminRole(id=entry))
        elif isinstance(entry, Mapping) and entry.get("id"):
            name = entry.get("name") or "Admin"
            out.append(AdminRole(id=str(entry["id"]), name=str(name)))
    return out


def admin_roles_configured(policy: Mapping[str, Any] | None) -> bool:
    # Judged on the raw list: malformed entries still count as "configured" (no fail-open).
    roles = (policy or {}).get("roles")
    if not isinstance(roles, Mapping):
        return False
    return bool(roles.get("admin"))


def admin_roles_as_objects(roles: Iterable[str | Mapping[str, Any]]) -> list[dict[str, str]]:
    # Write-side normalization: always persist the object encoding.
    policy = {"roles": {"admin": list(roles)}}
    return [{"id": r.id, "name": r.name} for r in normalize_admin_roles(policy)]


def match_admin_role(
    principal_roles: Iterable[str], policy: Mapping[str, Any] | None
) -> str | None:
    """
    Return the first *configured* admin role the principal holds, so the attributed
    role is stable regardless of the order of the principal's own roles.
    """

    held = set(principal_roles)
    for role in normalize_admin_roles(policy):
        if role.id in held:
            return role.id
    return None


class RolePolicyEvaluator:
    def __init__(self, *, cache: RoleChannelCache) -> None:
        self._cache = cache

    async def resolve_admin_role(
        self,
        principal_roles: Iterable[str],
        guild_id: str,
        policy: Mapping[str, Any] | None,
        *,
        validate_with_remote: bool = True,
    ) -> str | None:
        matched = match_admin_role(principal_roles, policy)
        if matched is None or not validate_with_remote:
            return matched

        valid = await self._cache.validate_many_ids(guild_id, IdKind.roles, [matched])
        if not valid.get(matched, False):
            # Stale configuration: the role was deleted on Discord (or could not be confirmed).
            log.warning("admin_role_not_on_discord", guild_id=guild_id, role_id=matched)
            return None
        return matched


# --- Module Notes -----------------------------------------------------------
# `match_admin_role` is pure and format-invariant; the remote leg lives only in
# `RolePolicyEvaluator` so it can be exercised with a fake cache source.

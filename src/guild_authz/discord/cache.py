"""
guild_authz.discord.cache

Time-boxed cache fronting batch role/channel existence lookups.

Responsibilities:
- Fetch *all* role (or channel) ids of a guild in one remote call and cache them
  per (guild_id, kind) for a fixed TTL.
- Validate many candidate ids against the cached set; any fetch failure resolves
  every candidate to False.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any, Protocol

from cachetools import TTLCache

from guild_authz.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300.0


class IdKind(enum.StrEnum):
    roles = "roles"
    channels = "channels"


class RoleChannelSource(Protocol):
    async def list_roles(self, guild_id: str) -> list[dict[str, Any]]: ...

    async def list_channels(self, guild_id: str) -> list[dict[str, Any]]: ...


class RoleChannelCache:
    """
    One instance is shared by every decision in the process. Concurrent misses on the
    same key may each fetch; no lock is held across the network call.
    """

    def __init__(
        self,
        *,
        source: RoleChannelSource,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        maxsize: int = 4096,
        timer=None,
    ) -> None:
        self._source = source
        kwargs: dict[str, Any] = {"maxsize": maxsize, "ttl": ttl_seconds}
        if timer is not None:
            kwargs["timer"] = timer
        self._entries: TTLCache[tuple[str, IdKind], tuple[str, ...]] = TTLCache(**kwargs)

    async def get_valid_ids(self, guild_id: str, kind: IdKind | str) -> list[str]:
        kind = IdKind(kind)
        key = (guild_id, kind)
        cached = self._entries.get(key)
        if cached is not None:
            return list(cached)

        if kind is IdKind.roles:
            items = await self._source.list_roles(guild_id)
        else:
            items = await self._source.list_channels(guild_id)

        ids = tuple(str(item["id"]) for item in items if isinstance(item, dict) and "id" in item)
        # Only successful fetches are cached; failures propagate and are never remembered.
        self._entries[key] = ids
        log.debug("role_channel_cache_filled", guild_id=guild_id, kind=str(kind), count=len(ids))
        return list(ids)

    async def validate_many_ids(
        self, guild_id: str, kind: IdKind | str, candidate_ids: Iterable[str]
    ) -> dict[str, bool]:
        candidates = list(dict.fromkeys(candidate_ids))
        if not candidates:
            return {}

        try:
            valid = set(await self.get_valid_ids(guild_id, kind))
        except Exception as e:
            # Result gates privilege upstream: never fail open.
            log.error(
                "batch_validation_failed",
                guild_id=guild_id,
                kind=str(kind),
                candidates=len(candidates),
                error=str(e),
            )
            return {cid: False for cid in candidates}

        result = {cid: cid in valid for cid in candidates}
        log.info(
            "batch_validated",
            guild_id=guild_id,
            kind=str(kind),
            candidates=len(candidates),
            valid=sum(result.values()),
        )
        return result

    async def validate_id(self, guild_id: str, kind: IdKind | str, candidate_id: str) -> bool:
        return (await self.validate_many_ids(guild_id, kind, [candidate_id])).get(
            candidate_id, False
        )


# --- Module Notes -----------------------------------------------------------
# Entries are invalidated only by expiry. Role edits on Discord become visible to
# validation at most one TTL window later.

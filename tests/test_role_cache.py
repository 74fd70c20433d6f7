"""
tests.test_role_cache

Batch validation cache for guild roles and channels.

Responsibilities:
- One remote fetch per (guild, kind) per TTL window, regardless of candidate count.
- Fetch failures resolve every candidate to False and are not cached.
"""

from __future__ import annotations

import pytest

from guild_authz.discord.cache import IdKind, RoleChannelCache
from tests.conftest import FakeRoleSource


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_many_candidates_single_fetch() -> None:
    source = FakeRoleSource(roles=["R1", "R2", "R3"])
    cache = RoleChannelCache(source=source)

    result = await cache.validate_many_ids("G1", IdKind.roles, ["R1", "R3", "R9", "R1"])
    again = await cache.validate_many_ids("G1", "roles", ["R2"])

    assert result == {"R1": True, "R3": True, "R9": False}
    assert again == {"R2": True}
    assert source.calls == [("roles", "G1")]


@pytest.mark.asyncio
async def test_keys_are_scoped_by_guild_and_kind() -> None:
    source = FakeRoleSource(roles=["R1"], channels=["C1"])
    cache = RoleChannelCache(source=source)

    assert await cache.validate_id("G1", IdKind.roles, "R1") is True
    assert await cache.validate_id("G1", IdKind.channels, "C1") is True
    assert await cache.validate_id("G2", IdKind.roles, "R1") is True
    assert source.calls == [("roles", "G1"), ("channels", "G1"), ("roles", "G2")]


@pytest.mark.asyncio
async def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    source = FakeRoleSource(roles=["R1"])
    cache = RoleChannelCache(source=source, ttl_seconds=300, timer=clock)

    await cache.get_valid_ids("G1", IdKind.roles)
    clock.now = 299.0
    await cache.get_valid_ids("G1", IdKind.roles)
    assert len(source.calls) == 1

    source.roles = ["R2"]
    clock.now = 301.0
    assert await cache.get_valid_ids("G1", IdKind.roles) == ["R2"]
    assert len(source.calls) == 2


@pytest.mark.asyncio
async def test_fetch_failure_fails_closed_and_is_not_cached() -> None:
    source = FakeRoleSource(roles=["R1"], error=RuntimeError("discord down"))
    cache = RoleChannelCache(source=source)

    assert await cache.validate_many_ids("G1", IdKind.roles, ["R1", "R2"]) == {
        "R1": False,
        "R2": False,
    }

    source.error = None
    assert await cache.validate_id("G1", IdKind.roles, "R1") is True
    assert len(source.calls) == 2


@pytest.mark.asyncio
async def test_empty_candidates_do_not_fetch() -> None:
    source = FakeRoleSource(roles=["R1"])
    cache = RoleChannelCache(source=source)

    assert await cache.validate_many_ids("G1", IdKind.roles, []) == {}
    assert source.calls == []


@pytest.mark.asyncio
async def test_get_valid_ids_propagates_errors() -> None:
    cache = RoleChannelCache(source=FakeRoleSource(error=RuntimeError("nope")))
    with pytest.raises(RuntimeError):
        await cache.get_valid_ids("G1", IdKind.channels)

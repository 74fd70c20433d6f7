"""
guild_authz.db.models

Persistence schema for the authorization core.

Responsibilities:
- Define ORM models:
  - GuildSettings: per-guild policy document (lazily created with defaults)
  - GuildMember: locally synced role snapshot, keyed by (user_id, guild_id)
  - UserToken: OAuth access token backing the default token provider
  - ActivityLog: append-only audit trail of authorization decisions
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Index, String, Text, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from guild_authz.db.base import Base


def _utcnow() -> datetime:
    # Naive UTC timestamps keep SQLite and Postgres comparisons consistent.
    return datetime.now(UTC).replace(tzinfo=None)


class GuildSettings(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class GuildMember(Base):
    __tablename__ = "guild_members"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    # Role ids as last synced from Discord; refreshed out-of-band.
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class UserToken(Base):
    __tablename__ = "user_tokens"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(512), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False)

    # NULL for service identities; only human principals carry a user id.
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    guild_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # `metadata` is reserved on declarative classes; keep the column name, rename the attribute.
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)

    __table_args__ = (Index("ix_activity_guild_created", "guild_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# ActivityLog rows are immutable: nothing in this package updates or deletes them.

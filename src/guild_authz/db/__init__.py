"""
guild_authz.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for settings,
  memberships, user tokens, and the append-only activity log.
"""

# Package marker.

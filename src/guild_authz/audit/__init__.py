"""
guild_authz.audit

Audit package.

Responsibilities:
- Record authorization decisions into the append-only activity log.
"""

# Package marker.

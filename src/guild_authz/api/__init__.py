"""
guild_authz.api

API package.

Responsibilities:
- FastAPI app factory (composition root for the authorization core).
- Routers exposing probes, guild-admin-guarded audit/settings endpoints, and
  owner-guarded per-user audit trails.
"""

# Package marker.

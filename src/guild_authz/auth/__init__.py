"""
guild_authz.auth

Authentication package.

Responsibilities:
- JWT helpers and validation.
- FastAPI dependencies that turn a bearer token into a `Principal` and run the
  guild admin decision.
"""

# Package marker.

"""
guild_authz

Top-level package for the Guild Authorization & Audit Engine.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal; consumers import the engine from `guild_authz.authz.engine`.

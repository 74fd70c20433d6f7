"""
guild_authz.discord

Discord client boundary.

Responsibilities:
- HTTP client for member permissions and role/channel listings.
- TTL cache fronting batch role/channel validation.
"""

# Package marker.

"""
guild_authz.observability

Observability package.

Responsibilities:
- Structured logging configuration and secret redaction.
- Request context propagation for consistent log enrichment.
"""

# Package marker.

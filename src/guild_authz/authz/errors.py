"""
guild_authz.authz.errors

Error taxonomy for the authorization core.

Responsibilities:
- Distinguish caller-contract violations from authorization denials.
- Signal upstream (Discord) unavailability so the engine can fail closed.
"""

from __future__ import annotations

from guild_authz.authz.models import Decision


class AuthorizationConfigError(ValueError):
    """Raised when the engine is called without a principal or guild id. Never audited."""


class AccessDeniedError(Exception):
    def __init__(self, decision: Decision) -> None:
        super().__init__(f"access denied: {decision.reason}")
        self.decision = decision


class ServiceUnavailableError(Exception):
    """Discord could not be reached (timeouts, 5xx, rate limits, auth failures)."""

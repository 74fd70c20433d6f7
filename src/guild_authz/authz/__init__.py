"""
guild_authz.authz

Authorization package.

Responsibilities:
- Domain models, collaborator protocols, the role policy evaluator, and the
  decision engine.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The engine depends only on the protocols in `authz.providers`; concrete adapters
# are passed in by the composition root (`api.app`) or by tests.

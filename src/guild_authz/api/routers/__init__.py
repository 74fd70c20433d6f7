"""
guild_authz.api.routers

Router modules.
"""

"""
guild_authz.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for the engine, the Discord client, and persistence.
- Hide secrets (bot token, JWT secret) from repr/logging.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GUILD_AUTHZ_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "guild-authz"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    forwarded_allow_ips: str = "127.0.0.1"

    # API bearer tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "guild-authz"
    jwt_audience: str = "guild-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./guild_authz.db"

    # Discord (remote permission provider + role/channel listing)
    discord_api_url: str = "https://discord.com/api/v10"
    discord_bot_token: str = Field(default="", repr=False)
    discord_timeout_seconds: float = 10.0
    discord_retry_attempts: int = 3

    # Role/channel validation cache
    role_cache_ttl_seconds: float = 300.0
    role_cache_maxsize: int = 4096

    # Decision engine
    decision_timeout_seconds: float = 30.0
    # Service identities may pass ownership checks only; admin checks never bypass.
    ownership_service_bypass: bool = True
    audit_detached: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# `decision_timeout_seconds` bounds the whole decision sequence; the Discord timeout
# bounds each individual remote call.

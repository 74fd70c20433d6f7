"""
guild_authz.api.app

FastAPI app factory.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Compose the authorization core (Discord client, role cache, adapters, recorder,
  engine) once per process and stash it on app.state.
- Initialize and dispose shared infrastructure (DB engine, HTTP client, pending audits).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from guild_authz import __version__
from guild_authz.api.routers.guilds import router as guilds_router
from guild_authz.api.routers.health import router as health_router
from guild_authz.api.routers.users import router as users_router
from guild_authz.audit.recorder import AuditRecorder
from guild_authz.authz.engine import AuthorizationEngine
from guild_authz.authz.policy import RolePolicyEvaluator
from guild_authz.authz.providers import (
    SqlGuildSettingsProvider,
    SqlMembershipStore,
    SqlTokenProvider,
)
from guild_authz.db.init_db import init_db
from guild_authz.db.session import create_engine, create_sessionmaker
from guild_authz.discord.cache import RoleChannelCache
from guild_authz.discord.client import DiscordApiClient
from guild_authz.observability.logging import configure_logging, get_logger
from guild_authz.observability.middleware import RequestContextMiddleware
from guild_authz.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    discord_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        db_engine = create_engine(settings)
        session_factory = create_sessionmaker(db_engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod uses Alembic.
            await init_db(db_engine)

        http = httpx.AsyncClient(base_url=settings.discord_api_url, transport=discord_transport)
        discord = DiscordApiClient.from_settings(settings, http)
        # Single cache instance shared by every request in this process.
        cache = RoleChannelCache(
            source=discord,
            ttl_seconds=settings.role_cache_ttl_seconds,
            maxsize=settings.role_cache_maxsize,
        )
        guild_settings = SqlGuildSettingsProvider(session_factory=session_factory)
        recorder = AuditRecorder(session_factory=session_factory)

        app.state.engine = db_engine
        app.state.sessionmaker = session_factory
        app.state.guild_settings = guild_settings
        app.state.audit_recorder = recorder
        app.state.authz_engine = AuthorizationEngine(
            tokens=SqlTokenProvider(session_factory=session_factory),
            permissions=discord,
            guild_settings=guild_settings,
            memberships=SqlMembershipStore(session_factory=session_factory),
            evaluator=RolePolicyEvaluator(cache=cache),
            recorder=recorder,
            detach_audit=settings.audit_detached,
            decision_timeout_seconds=settings.decision_timeout_seconds,
            ownership_service_bypass=settings.ownership_service_bypass,
        )
        try:
            yield
        finally:
            # Let detached audit writes finish before the pool goes away.
            await recorder.drain()
            await http.aclose()
            await db_engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Guild Authorization & Audit",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(guilds_router)
    app.include_router(users_router)

    return app


# --- Module Notes -----------------------------------------------------------
# This is the only place concrete adapters are chosen; the engine itself sees protocols.

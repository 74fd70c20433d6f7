"""
guild_authz.api.__main__

Entrypoint for running the API via `python -m guild_authz.api`.
"""

from __future__ import annotations

import uvicorn

from guild_authz.api.app import create_app
from guild_authz.settings import get_settings


def main() -> None:
    settings = get_settings()

    # Audit metadata records the caller IP, so trust X-Forwarded-For only from known proxies.
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

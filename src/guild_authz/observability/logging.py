"""
guild_authz.observability.logging

Structured logging configuration for the service.

Responsibilities:
- Configure `structlog` for JSON logs suitable for ELK/Splunk/Datadog.
- Redact credentials (OAuth bearer tokens, bot tokens, JWTs) before rendering.
- Provide a small wrapper for obtaining bound loggers.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog

_JWT_RE = re.compile(r"(Bearer\s+)?eyJ[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)+")
_AUTH_HEADER_RE = re.compile(r"\b(Bearer|Bot)\s+[\w.~+/=-]+")
_SECRET_KEY_RE = re.compile(r"(^|_)(token|secret|password|pwd)$|_key$", re.IGNORECASE)

REDACTED = "[REDACTED]"


def configure_logging(*, service_name: str, level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            redact_secrets,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def sanitize_string(message: str) -> str:
    """Mask JWTs and `Bearer`/`Bot` credentials embedded in free text."""

    sanitized = _JWT_RE.sub(lambda m: f"{m.group(1) or ''}[JWT_TOKEN]", message)
    return _AUTH_HEADER_RE.sub(lambda m: f"{m.group(1)} {REDACTED}", sanitized)


def sanitize_value(key: str | None, value: Any) -> Any:
    if key is not None and _SECRET_KEY_RE.search(key) and value:
        return REDACTED
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {k: sanitize_value(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(None, v) for v in value]
    return value


def redact_secrets(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Runs before rendering so neither the event text nor bound fields leak credentials.
    return {k: sanitize_value(k, v) for k, v in event_dict.items()}


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`.

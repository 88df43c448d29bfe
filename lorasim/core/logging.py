"""
core/logging.py
---------------
structlog configuration for the emulator backend.

DEBUG=true  → coloured console lines
DEBUG=false → one JSON object per line

Webhook deliveries and simulated uplinks carry credentials (TTN API keys,
HMAC signatures, bearer tokens). redact_secrets masks those keys in every
event before rendering, so a stray `api_key=...` never reaches the log sink.

Request-scoped fields (record_id, event_type, organization_id) are bound with
bind_context() and merged into every event by merge_contextvars.
"""

import logging
import sys
from typing import Any, MutableMapping

import structlog

from lorasim.core.config import settings

REDACTED = "***"
SECRET_KEYS = frozenset(
    {"api_key", "authorization", "signature", "secret", "token", "access_token", "app_key"}
)

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-bearing keys, keeping the last 4 chars for correlation."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > 8:
            event_dict[key] = REDACTED + value[-4:]
        elif value is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging() -> None:
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    if not settings.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_context(**fields: Any) -> None:
    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = __name__):
    return structlog.get_logger(name)

"""
Structured logging for rxauth, structlog over stdlib logging.

Usage:
    from .logging import get_logger
    logger = get_logger()
    logger.info("principal_resolved", user_id=uid, role="doctor")

Entries carry timestamp, level, event and logger name. Variables bound with
structlog.contextvars (request_id, route) are merged into every entry.
Credential-bearing keys (authorization, cookie, access_token, apikey, ...)
are redacted before rendering, wherever they appear in an entry.
"""

from __future__ import annotations

import logging
import os

import structlog

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "apikey",
        "authorization",
        "cookie",
        "cookies",
        "refresh_token",
        "service_role_key",
        "token",
    }
)


def _scrub(value: object) -> object:
    if isinstance(value, dict):
        return {k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    return value


def redact_credentials(
    _logger: object, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """structlog processor: mask credential values, including inside nested headers/cookies dicts."""
    return _scrub(event_dict)  # type: ignore[return-value]


def setup_logging() -> None:
    """Configure structlog + stdlib logging (JSON unless LOG_FORMAT=console)."""
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    log_format = os.getenv("LOG_FORMAT", "json").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_credentials,
    ]

    renderer: structlog.types.Processor
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level, logging.INFO))

    # httpx logs full request URLs at INFO, including PostgREST filters on user ids
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or "rxauth")  # type: ignore[no-any-return]

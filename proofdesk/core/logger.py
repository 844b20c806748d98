"""structlog configuration: JSON lines with request id and redaction."""

from __future__ import annotations

import logging
from typing import Any

import structlog

from proofdesk.core.config import get_settings


_CONFIGURED = False

_REDACTED_KEYS = frozenset({"token", "password", "authorization", "session"})
_EMAIL_KEYS = frozenset({"to", "email", "customer_email", "staff_email"})


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def _redact_sensitive(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    del logger, method_name
    for key in list(event_dict):
        if key in _REDACTED_KEYS:
            event_dict[key] = "[redacted]"
        elif key in _EMAIL_KEYS and isinstance(event_dict[key], str):
            event_dict[key] = mask_email(event_dict[key])
    return event_dict


def _add_default_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    del logger, method_name
    event_dict.setdefault("request_id", None)
    return event_dict


def configure_logging() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_default_context,
            structlog.processors.CallsiteParameterAdder([structlog.processors.CallsiteParameter.MODULE]),
            _redact_sensitive,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def bind_request_context(request_id: str) -> None:
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars("request_id")

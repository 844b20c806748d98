"""Sentry wiring: one-time init, per-request scopes and tagged captures."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Mapping

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from proofdesk.core.config import get_settings
from proofdesk.core.logger import get_logger


_SENTRY_INITIALIZED = False

# Customer addresses and magic tokens never leave the process.
_SCRUBBED_KEYS = frozenset({"customer_email", "token", "authorization", "cookie", "password"})


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    del hint
    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            for key in list(headers):
                if key.lower() in _SCRUBBED_KEYS:
                    headers[key] = "[scrubbed]"
        request.pop("cookies", None)
        request.pop("data", None)
    extra = event.get("extra")
    if isinstance(extra, dict):
        for key in list(extra):
            if key.lower() in _SCRUBBED_KEYS:
                extra[key] = "[scrubbed]"
    return event


def _call_sentry_init(**kwargs: Any) -> None:
    sentry_sdk.init(**kwargs)


def init_sentry() -> bool:
    """Initialize Sentry once when SENTRY_DSN is set."""

    global _SENTRY_INITIALIZED
    if _SENTRY_INITIALIZED:
        return True

    settings = get_settings()
    dsn = settings.sentry_dsn.strip()
    if not dsn:
        return False

    _call_sentry_init(
        dsn=dsn,
        environment=settings.env,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        before_send=_scrub_event,
        integrations=[FastApiIntegration()],
    )
    _SENTRY_INITIALIZED = True
    get_logger("proofdesk.observability").info(
        "sentry_initialized",
        env=settings.env,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    return True


@contextmanager
def sentry_scope(*, request_id: str | None = None, path: str | None = None):
    """Isolate breadcrumbs and tags for one request."""

    with sentry_sdk.new_scope() as scope:
        if request_id:
            scope.set_tag("request_id", request_id)
        if path:
            scope.set_tag("path", path)
        yield


def capture_exception(exc: BaseException, *, tags: Mapping[str, str] | None = None) -> None:
    if not _SENTRY_INITIALIZED:
        return
    with sentry_sdk.new_scope() as scope:
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        sentry_sdk.capture_exception(exc)


def reset_observability_for_tests() -> None:
    global _SENTRY_INITIALIZED
    _SENTRY_INITIALIZED = False

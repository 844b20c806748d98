"""FastAPI application entrypoint for ProofDesk."""

from __future__ import annotations

import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from proofdesk.auth.router import router as auth_router
from proofdesk.core.config import get_settings
from proofdesk.core.logger import bind_request_context, clear_request_context, get_logger
from proofdesk.core.metrics import record_http_request, record_rate_limit_block, render_prometheus_metrics
from proofdesk.core.observability import init_sentry, sentry_scope
from proofdesk.core.rate_limit import (
    RateLimitRule,
    apply_rate_limit_headers,
    get_rate_limiter,
    resolve_client_ip,
)
from proofdesk.decisions.router import router as decisions_router
from proofdesk.orders.router import router as orders_router
from proofdesk.portal.router import router as portal_router
from proofdesk.proofs.router import router as proofs_router
from proofdesk.reminders.router import router as reminders_router
from proofdesk.settings.router import router as settings_router
from proofdesk.storage.db import load_models
from proofdesk.storage.db import test_connection as test_db_connection
from proofdesk.storage.redis_client import test_connection as test_redis_connection
from proofdesk.sync.router import router as sync_router


settings = get_settings()
logger = get_logger("proofdesk.api")

_PATH_PARAM = re.compile(r"\{(\w+)\}")

app = FastAPI(title=settings.app_name, version=settings.app_version)


def _route_label(request: Request) -> str:
    """Label a request by its route template so tokens and ids stay out of metrics.

    Included routers may report the template without their prefix; the prefix
    is recovered from the concrete path. Anything unresolved is "unmatched".
    """

    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if not isinstance(template, str):
        return "unmatched"
    params = request.scope.get("path_params") or {}
    concrete = _PATH_PARAM.sub(lambda match: str(params.get(match.group(1), "")), template)
    path = request.scope.get("path", "")
    if not path.endswith(concrete):
        return "unmatched"
    return path[: len(path) - len(concrete)] + template


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    request.state.request_id = request_id
    bind_request_context(request_id=request_id)

    response = None
    decision = None
    status_code = 500

    try:
        with sentry_scope(request_id=request_id, path=request.url.path):
            if settings.ip_rate_limit_enabled and settings.is_production:
                decision = get_rate_limiter().check(
                    key=f"ip:{resolve_client_ip(request)}",
                    rule=RateLimitRule(
                        max_requests=settings.ip_rate_limit_requests_per_window,
                        window_seconds=settings.ip_rate_limit_window_seconds,
                    ),
                )
                if not decision.allowed:
                    record_rate_limit_block(kind="ip")
                    response = JSONResponse(
                        status_code=429,
                        content={
                            "detail": "Rate limit exceeded",
                            "limit": decision.limit,
                            "remaining": decision.remaining,
                            "reset_seconds": decision.reset_seconds,
                        },
                        headers={"Retry-After": str(decision.reset_seconds)},
                    )
                else:
                    response = await call_next(request)
            else:
                response = await call_next(request)
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=_route_label(request),
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    if decision is not None:
        apply_rate_limit_headers(response, decision)
    response.headers["x-request-id"] = request_id
    return response


@app.on_event("startup")
def on_startup() -> None:
    load_models()
    sentry_enabled = init_sentry()
    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
        ip_rate_limit_enabled=settings.ip_rate_limit_enabled,
        shipstation_configured=settings.shipstation_configured(),
        session_configured=settings.session_configured(),
        cron_configured=settings.cron_configured(),
        email_configured=settings.email_configured(),
    )
    if not settings.shipstation_configured():
        logger.warning(
            "shipstation_sync_disabled",
            missing_env_vars=settings.shipstation_missing_env_vars(),
        )


@app.get("/health")
def health() -> JSONResponse:
    db_ok, db_error = test_db_connection()
    services = {"database": {"ok": db_ok, "error": db_error}}
    healthy = db_ok

    if settings.rate_limit_backend.strip().lower() == "redis":
        redis_ok, redis_error = test_redis_connection()
        services["redis"] = {"ok": redis_ok, "error": redis_error}
        healthy = healthy and redis_ok

    payload = {
        "status": "ok" if healthy else "degraded",
        "env": settings.env,
        "services": services,
        "integrations": {
            "shipstation": settings.shipstation_configured(),
            "email": settings.email_configured(),
        },
    }
    return JSONResponse(content=payload, status_code=200 if healthy else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(auth_router)
app.include_router(sync_router)
app.include_router(decisions_router)
app.include_router(proofs_router)
app.include_router(portal_router)
app.include_router(orders_router)
app.include_router(settings_router)
app.include_router(reminders_router)

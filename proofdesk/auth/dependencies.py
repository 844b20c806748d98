"""FastAPI dependencies for admin sessions and cron bearer auth."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from proofdesk.auth.session import is_valid_session_token
from proofdesk.core.config import get_settings
from proofdesk.storage.security import constant_time_equals


def has_admin_session(request: Request) -> bool:
    settings = get_settings()
    return is_valid_session_token(request.cookies.get(settings.session_cookie_name), settings)


def cron_authorized(request: Request) -> bool:
    settings = get_settings()
    if not settings.cron_configured():
        return False
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return False
    return constant_time_equals(token.strip(), settings.cron_secret)


def require_admin(request: Request) -> None:
    if not has_admin_session(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )


def require_cron(request: Request) -> None:
    if not cron_authorized(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def require_admin_or_cron(request: Request) -> str:
    """Return who triggered the call: ``manual`` for staff, ``cron`` for the scheduler."""

    if has_admin_session(request):
        return "manual"
    if cron_authorized(request):
        return "cron"
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )

"""Signed admin session tokens carried in an HttpOnly cookie."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt

from proofdesk.core.config import Settings, get_settings
from proofdesk.storage.security import constant_time_equals


SESSION_SUBJECT = "admin"


class SessionNotConfiguredError(RuntimeError):
    pass


def _require_configured(settings: Settings) -> None:
    if not settings.session_configured():
        raise SessionNotConfiguredError("Admin login is not configured")


def verify_admin_password(password: str, settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    _require_configured(settings)
    return constant_time_equals(password, settings.admin_password)


def create_session_token(settings: Optional[Settings] = None) -> Tuple[str, int]:
    """Return (token, max_age_seconds) for a fresh admin session."""

    settings = settings or get_settings()
    _require_configured(settings)
    max_age = settings.session_duration_days * 24 * 60 * 60
    now = datetime.now(timezone.utc)
    payload = {
        "sub": SESSION_SUBJECT,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=max_age)).timestamp()),
    }
    token = jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)
    return token, max_age


def is_valid_session_token(token: Optional[str], settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    if not token or not settings.session_configured():
        return False
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except jwt.PyJWTError:
        return False
    return payload.get("sub") == SESSION_SUBJECT

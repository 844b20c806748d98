from datetime import datetime, timedelta, timezone

import jwt

from proofdesk.auth.session import create_session_token, is_valid_session_token
from proofdesk.core.config import get_settings
from tests.conftest import (
    ADMIN_PASSWORD,
    CRON_HEADERS,
    SESSION_SECRET,
    create_api_test_context,
    teardown_api_test_context,
)


def test_login_sets_http_only_session_cookie(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        response = context.client.post("/auth/login", json={"password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        cookie_header = response.headers["set-cookie"]
        assert cookie_header.startswith("admin_session=")
        assert "HttpOnly" in cookie_header
        assert "samesite=lax" in cookie_header.lower()
        assert context.client.get("/orders").status_code == 200
    finally:
        teardown_api_test_context()


def test_login_rejects_wrong_password(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        response = context.client.post("/auth/login", json={"password": "wrong-password"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"
        assert "set-cookie" not in response.headers
    finally:
        teardown_api_test_context()


def test_login_is_rate_limited(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        statuses = [
            context.client.post("/auth/login", json={"password": "wrong-password"}).status_code
            for _ in range(6)
        ]

        assert statuses == [401, 401, 401, 401, 401, 429]
    finally:
        teardown_api_test_context()


def test_login_unavailable_without_session_secret(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    monkeypatch.setenv("SESSION_SECRET", "")
    get_settings.cache_clear()
    try:
        response = context.client.post("/auth/login", json={"password": ADMIN_PASSWORD})
        assert response.status_code == 503
    finally:
        teardown_api_test_context()


def test_logout_clears_session(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        context.client.post("/auth/login", json={"password": ADMIN_PASSWORD})
        response = context.client.post("/auth/logout")

        assert response.status_code == 200
        assert context.client.get("/orders").status_code == 401
    finally:
        teardown_api_test_context()


def test_admin_routes_reject_missing_or_forged_sessions(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        forged = jwt.encode({"sub": "admin"}, "some-other-secret-value-0123456789", algorithm="HS256")

        assert context.client.get("/orders").status_code == 401
        assert context.client.get("/orders", headers=CRON_HEADERS).status_code == 401
        context.client.cookies.set("admin_session", forged)
        assert context.client.get("/orders").status_code == 401
    finally:
        teardown_api_test_context()


def test_session_tokens_expire(monkeypatch, tmp_path) -> None:
    create_api_test_context(monkeypatch, tmp_path)
    try:
        settings = get_settings()
        token, max_age = create_session_token(settings)
        expired = jwt.encode(
            {"sub": "admin", "exp": int((datetime.now(timezone.utc) - timedelta(minutes=1)).timestamp())},
            SESSION_SECRET,
            algorithm="HS256",
        )

        assert max_age == 7 * 24 * 60 * 60
        assert is_valid_session_token(token, settings) is True
        assert is_valid_session_token(expired, settings) is False
        assert is_valid_session_token(None, settings) is False
    finally:
        teardown_api_test_context()

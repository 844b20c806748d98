"""Admin login and logout routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from proofdesk.auth.session import SessionNotConfiguredError, create_session_token, verify_admin_password
from proofdesk.core.config import get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.rate_limit import rate_limit
from proofdesk.schemas.auth import LoginRequest, LoginResponse


router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger("proofdesk.auth")


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit("login", "login"))],
)
def login(payload: LoginRequest, response: Response) -> LoginResponse:
    settings = get_settings()
    try:
        valid = verify_admin_password(payload.password, settings)
        token, max_age = create_session_token(settings) if valid else ("", 0)
    except SessionNotConfiguredError as exc:
        logger.warning("admin_login_unavailable", reason="session_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin login is not configured",
        ) from exc

    if not valid:
        logger.info("admin_login_rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    logger.info("admin_login_succeeded")
    return LoginResponse()


@router.post("/logout", response_model=LoginResponse)
def logout(response: Response) -> LoginResponse:
    settings = get_settings()
    response.delete_cookie(settings.session_cookie_name, path="/")
    return LoginResponse()

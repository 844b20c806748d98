"""Resend API client for transactional proof e-mail."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx

from proofdesk.core.config import get_settings


_DETAIL_MAX_LENGTH = 200


class EmailClientError(RuntimeError):
    """Raised when the e-mail provider rejects or cannot take a message."""


def format_sender(name: str, address: str) -> str:
    """Render a From header, stripping characters that would break it."""

    cleaned_name = name.replace('"', "").replace("<", "").replace(">", "").strip()
    if not cleaned_name:
        return address.strip()
    return f"{cleaned_name} <{address.strip()}>"


def _truncate(detail: str) -> str:
    detail = detail.strip()
    if len(detail) > _DETAIL_MAX_LENGTH:
        return detail[:_DETAIL_MAX_LENGTH] + "..."
    return detail


class ResendClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.resend.com",
        timeout_seconds: int = 20,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        if not self._api_key:
            raise EmailClientError("email_api_key_missing")
        headers = {"Authorization": f"Bearer {self._api_key}"}
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                return self._client.post(url, headers=headers, json=payload)
            with httpx.Client(timeout=self._timeout_seconds) as client:
                return client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise EmailClientError("email_provider_timeout") from exc
        except httpx.HTTPError as exc:
            raise EmailClientError(f"email_provider_unreachable error={exc.__class__.__name__}") from exc

    def send_email(
        self,
        *,
        from_address: str,
        to: List[str],
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
    ) -> Dict[str, Any]:
        recipients = [recipient.strip() for recipient in to if recipient and recipient.strip()]
        html = (html or "").strip()
        text = (text or "").strip()
        if not recipients:
            raise EmailClientError("email_recipients_missing")
        if not from_address.strip():
            raise EmailClientError("email_from_address_missing")
        if not subject.strip():
            raise EmailClientError("email_subject_missing")
        if not html and not text:
            raise EmailClientError("email_body_missing")

        payload: Dict[str, Any] = {
            "from": from_address.strip(),
            "to": recipients,
            "subject": subject.strip(),
        }
        if html:
            payload["html"] = html
        if text:
            payload["text"] = text

        response = self._post("/emails", payload)
        if not response.is_success:
            raise EmailClientError(
                f"email_provider_request_failed status={response.status_code} detail={_truncate(response.text)}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise EmailClientError("email_provider_invalid_json_response") from exc
        if not isinstance(body, dict):
            raise EmailClientError("email_provider_invalid_payload")
        return body


@lru_cache(maxsize=1)
def get_resend_client() -> ResendClient:
    settings = get_settings()
    return ResendClient(
        api_key=settings.email_api_key,
        base_url=settings.email_api_base_url,
        timeout_seconds=settings.email_api_timeout_seconds,
    )

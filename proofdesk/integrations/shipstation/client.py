"""HTTP client for the ShipStation orders API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger


SYNC_TYPES = ("incremental", "24h", "7d", "30d", "full")
DEFAULT_SYNC_TYPE = "incremental"
FULL_SYNC_START = datetime(2020, 1, 1, tzinfo=timezone.utc)
INCREMENTAL_FALLBACK = timedelta(days=7)
_FIXED_WINDOWS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

logger = get_logger("proofdesk.shipstation")


class ShipStationError(RuntimeError):
    """Base class for ShipStation failures. Messages never carry credentials."""


class ShipStationNotConfiguredError(ShipStationError):
    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__("ShipStation not configured")


class ShipStationAuthError(ShipStationError):
    pass


class ShipStationRateLimitError(ShipStationError):
    pass


class ShipStationNetworkError(ShipStationError):
    pass


class ShipStationAPIError(ShipStationError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class StoreSummary:
    id: int
    name: str
    marketplace: str


@dataclass(frozen=True)
class CredentialCheckResult:
    valid: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    rate_limit_remaining: Optional[int] = None
    stores: Tuple[StoreSummary, ...] = field(default_factory=tuple)


def is_configured(settings: Optional[Settings] = None) -> bool:
    return (settings or get_settings()).shipstation_configured()


def missing_env_vars(settings: Optional[Settings] = None) -> List[str]:
    return (settings or get_settings()).shipstation_missing_env_vars()


def normalize_sync_type(value: Optional[str]) -> str:
    normalized = (value or "").strip().lower()
    if normalized in SYNC_TYPES:
        return normalized
    return DEFAULT_SYNC_TYPE


def resolve_modified_after(
    sync_type: str,
    last_sync: Optional[datetime],
    now: Optional[datetime] = None,
) -> datetime:
    """Return the modification cutoff for a sync run.

    Fixed-window types always measure back from ``now``; only ``incremental``
    consults the last successful sync, falling back to seven days.
    """

    current = now or datetime.now(timezone.utc)
    sync_type = normalize_sync_type(sync_type)
    if sync_type == "full":
        return FULL_SYNC_START
    if sync_type in _FIXED_WINDOWS:
        return current - _FIXED_WINDOWS[sync_type]
    if last_sync is not None:
        if last_sync.tzinfo is None:
            return last_sync.replace(tzinfo=timezone.utc)
        return last_sync
    return current - INCREMENTAL_FALLBACK


def format_api_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc_value = value.astimezone(timezone.utc)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"


def _snippet(response: httpx.Response, limit: int) -> str:
    try:
        text = response.text
    except Exception:
        return ""
    return text.strip()[:limit]


class ShipStationClient:
    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        base_url: str = "https://ssapi.shipstation.com",
        timeout_seconds: int = 30,
        page_size: int = 100,
        max_pages: int = 50,
        page_delay_seconds: float = 1.5,
        rate_limit_backoff_seconds: float = 30.0,
        network_backoff_seconds: float = 5.0,
        max_retries: int = 3,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_key = api_key.strip()
        self._api_secret = api_secret.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay_seconds = page_delay_seconds
        self.rate_limit_backoff_seconds = rate_limit_backoff_seconds
        self.network_backoff_seconds = network_backoff_seconds
        self.max_retries = max(1, max_retries)
        self._client = client
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._api_secret)

    def missing_env_vars(self) -> List[str]:
        missing: List[str] = []
        if not self._api_key:
            missing.append("SHIPSTATION_API_KEY")
        if not self._api_secret:
            missing.append("SHIPSTATION_API_SECRET")
        return missing

    def _send(self, path: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        auth = (self._api_key, self._api_secret)
        headers = {"Content-Type": "application/json"}
        if self._client is not None:
            return self._client.get(url, params=params, auth=auth, headers=headers)
        with httpx.Client(timeout=self._timeout_seconds) as client:
            return client.get(url, params=params, auth=auth, headers=headers)

    def _get_with_retry(self, path: str, params: Dict[str, str]) -> httpx.Response:
        rate_limit_retries = 0
        network_attempts = 0

        while True:
            try:
                response = self._send(path, params)
            except httpx.TransportError as exc:
                network_attempts += 1
                if network_attempts >= self.max_retries:
                    logger.error(
                        "shipstation_network_failed",
                        attempts=network_attempts,
                        error_type=exc.__class__.__name__,
                    )
                    raise ShipStationNetworkError(
                        f"Network error fetching orders: {exc.__class__.__name__}"
                    ) from exc
                wait_seconds = self.network_backoff_seconds * network_attempts
                logger.warning(
                    "shipstation_network_retry",
                    attempt=network_attempts,
                    wait_seconds=wait_seconds,
                    error_type=exc.__class__.__name__,
                )
                self._sleep(wait_seconds)
                continue

            if response.status_code == 429:
                rate_limit_retries += 1
                if rate_limit_retries > self.max_retries:
                    logger.error("shipstation_rate_limit_exhausted", retries=self.max_retries)
                    raise ShipStationRateLimitError(
                        "ShipStation rate limit reached after retries. Try again later."
                    )
                wait_seconds = self.rate_limit_backoff_seconds * (2 ** (rate_limit_retries - 1))
                logger.warning(
                    "shipstation_rate_limited",
                    retry=rate_limit_retries,
                    wait_seconds=wait_seconds,
                    retry_after=response.headers.get("Retry-After"),
                )
                self._sleep(wait_seconds)
                continue

            if response.status_code == 401:
                logger.error("shipstation_auth_failed", status=401)
                raise ShipStationAuthError(
                    "Invalid ShipStation API credentials. "
                    "Check SHIPSTATION_API_KEY and SHIPSTATION_API_SECRET."
                )

            if response.status_code < 200 or response.status_code >= 300:
                body_snippet = _snippet(response, 200)
                logger.error(
                    "shipstation_api_error",
                    status=response.status_code,
                    body_snippet=body_snippet,
                )
                raise ShipStationAPIError(
                    f"ShipStation API error {response.status_code}: {body_snippet}",
                    status_code=response.status_code,
                )
            return response

    def _safe_json(self, response: httpx.Response, *, context: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ShipStationAPIError(f"{context} returned invalid JSON") from exc

    def fetch_orders(self, modified_after: Optional[datetime]) -> List[Dict[str, Any]]:
        """Fetch every order modified at or after the cutoff, newest first."""

        if not self.configured:
            raise ShipStationNotConfiguredError(self.missing_env_vars())

        logger.info(
            "shipstation_fetch_started",
            modified_after=format_api_timestamp(modified_after) if modified_after else None,
            has_api_key=bool(self._api_key),
            has_api_secret=bool(self._api_secret),
        )

        orders: List[Dict[str, Any]] = []
        page = 1
        while True:
            params = {
                "page": str(page),
                "pageSize": str(self.page_size),
                "sortBy": "ModifyDate",
                "sortDir": "DESC",
            }
            if modified_after is not None:
                params["modifyDateStart"] = format_api_timestamp(modified_after)

            response = self._get_with_retry("/orders", params)
            payload = self._safe_json(response, context="ShipStation orders")
            if not isinstance(payload, dict):
                raise ShipStationAPIError("ShipStation orders returned invalid payload format")

            page_orders = [item for item in payload.get("orders") or [] if isinstance(item, dict)]
            orders.extend(page_orders)
            total_pages = int(payload.get("pages") or 0)
            current_page = int(payload.get("page") or page)
            logger.info(
                "shipstation_page_fetched",
                page=current_page,
                orders_on_page=len(page_orders),
                total_pages=total_pages,
                total_orders=len(orders),
            )

            if current_page >= total_pages:
                break
            if page >= self.max_pages:
                logger.warning("shipstation_page_cap_reached", max_pages=self.max_pages, total_pages=total_pages)
                break
            page += 1
            self._sleep(self.page_delay_seconds)

        logger.info("shipstation_fetch_completed", total_orders=len(orders))
        return orders

    def verify_credentials(self) -> CredentialCheckResult:
        if not self.configured:
            return CredentialCheckResult(
                valid=False,
                error="Missing API credentials",
                error_code="missing_credentials",
            )

        try:
            response = self._send("/stores")
        except httpx.TransportError as exc:
            return CredentialCheckResult(
                valid=False,
                error=f"Network error: {exc.__class__.__name__}",
                error_code="network_error",
            )

        if response.status_code == 401:
            return CredentialCheckResult(
                valid=False,
                error="Invalid API credentials",
                error_code="invalid_credentials",
            )
        if response.status_code == 429:
            return CredentialCheckResult(
                valid=False,
                error="Rate limit exceeded",
                error_code="rate_limited",
                rate_limit_remaining=0,
            )
        if response.status_code < 200 or response.status_code >= 300:
            return CredentialCheckResult(
                valid=False,
                error=f"API error: {response.status_code} {_snippet(response, 100)}".strip(),
                error_code="api_error",
            )

        try:
            payload = self._safe_json(response, context="ShipStation stores")
        except ShipStationAPIError as exc:
            return CredentialCheckResult(valid=False, error=str(exc), error_code="api_error")

        remaining_header = response.headers.get("X-Rate-Limit-Remaining")
        remaining = int(remaining_header) if remaining_header and remaining_header.isdigit() else None
        stores = tuple(
            StoreSummary(
                id=int(item.get("storeId") or 0),
                name=str(item.get("storeName") or ""),
                marketplace=str(item.get("marketplaceName") or ""),
            )
            for item in (payload if isinstance(payload, list) else [])
            if isinstance(item, dict)
        )
        return CredentialCheckResult(valid=True, rate_limit_remaining=remaining, stores=stores)


@lru_cache(maxsize=1)
def get_shipstation_client() -> ShipStationClient:
    settings = get_settings()
    return ShipStationClient(
        api_key=settings.shipstation_api_key,
        api_secret=settings.shipstation_api_secret,
        base_url=settings.shipstation_api_url,
        timeout_seconds=settings.shipstation_timeout_seconds,
        page_size=settings.shipstation_page_size,
        max_pages=settings.shipstation_max_pages,
        page_delay_seconds=settings.shipstation_page_delay_seconds,
        rate_limit_backoff_seconds=settings.shipstation_rate_limit_backoff_seconds,
        network_backoff_seconds=settings.shipstation_network_backoff_seconds,
        max_retries=settings.shipstation_max_retries,
    )

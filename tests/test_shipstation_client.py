from datetime import datetime, timedelta, timezone

import httpx
import pytest

from proofdesk.integrations.shipstation.client import (
    FULL_SYNC_START,
    ShipStationAPIError,
    ShipStationAuthError,
    ShipStationClient,
    ShipStationNetworkError,
    ShipStationNotConfiguredError,
    ShipStationRateLimitError,
    format_api_timestamp,
    normalize_sync_type,
    resolve_modified_after,
)


API_KEY = "ss-key-abc"
API_SECRET = "ss-secret-xyz"


def _client(handler, sleeps, **overrides) -> ShipStationClient:
    kwargs = {
        "api_key": API_KEY,
        "api_secret": API_SECRET,
        "base_url": "https://ssapi.test",
        "client": httpx.Client(transport=httpx.MockTransport(handler)),
        "sleep": sleeps.append,
    }
    kwargs.update(overrides)
    return ShipStationClient(**kwargs)


def _page(page: int, pages: int, orders=None) -> dict:
    return {"orders": orders if orders is not None else [{"orderId": page}], "page": page, "pages": pages, "total": pages}


def test_fetch_orders_retries_once_after_rate_limit() -> None:
    sleeps = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(429, headers={"Retry-After": "30"})
        return httpx.Response(200, json=_page(1, 1))

    orders = _client(handler, sleeps).fetch_orders(None)

    assert orders == [{"orderId": 1}]
    assert calls["count"] == 2
    assert sleeps == [30.0]


def test_fetch_orders_gives_up_after_rate_limit_retries() -> None:
    sleeps = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(429)

    with pytest.raises(ShipStationRateLimitError):
        _client(handler, sleeps).fetch_orders(None)

    assert calls["count"] == 4
    assert sleeps == [30.0, 60.0, 120.0]


def test_fetch_orders_fails_fast_on_bad_credentials() -> None:
    sleeps = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(ShipStationAuthError) as exc_info:
        _client(handler, sleeps).fetch_orders(None)

    assert calls["count"] == 1
    assert sleeps == []
    assert API_KEY not in str(exc_info.value)
    assert API_SECRET not in str(exc_info.value)


def test_fetch_orders_retries_network_errors_with_linear_backoff() -> None:
    sleeps = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_page(1, 1))

    orders = _client(handler, sleeps).fetch_orders(None)

    assert len(orders) == 1
    assert sleeps == [5.0, 10.0]


def test_fetch_orders_raises_after_network_retries() -> None:
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ShipStationNetworkError):
        _client(handler, sleeps).fetch_orders(None)

    assert sleeps == [5.0, 10.0]


def test_fetch_orders_surfaces_other_statuses_with_snippet() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="x" * 500)

    with pytest.raises(ShipStationAPIError) as exc_info:
        _client(handler, []).fetch_orders(None)

    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "ShipStation API error 500: " + "x" * 200


def test_fetch_orders_walks_pages_with_delay_between_pages() -> None:
    sleeps = []
    seen_params = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        seen_params.append(params)
        assert request.headers["authorization"].startswith("Basic ")
        page = int(params["page"])
        return httpx.Response(200, json=_page(page, 3))

    modified_after = datetime(2026, 10, 18, 12, 30, 5, 123456, tzinfo=timezone.utc)
    orders = _client(handler, sleeps).fetch_orders(modified_after)

    assert [item["orderId"] for item in orders] == [1, 2, 3]
    assert sleeps == [1.5, 1.5]
    assert [params["page"] for params in seen_params] == ["1", "2", "3"]
    assert seen_params[0]["pageSize"] == "100"
    assert seen_params[0]["sortBy"] == "ModifyDate"
    assert seen_params[0]["sortDir"] == "DESC"
    assert seen_params[0]["modifyDateStart"] == "2026-10-18T12:30:05.123Z"


def test_fetch_orders_stops_at_page_cap() -> None:
    sleeps = []
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json=_page(int(request.url.params["page"]), 80))

    orders = _client(handler, sleeps).fetch_orders(None)

    assert calls["count"] == 50
    assert len(orders) == 50
    assert len(sleeps) == 49


def test_fetch_orders_requires_credentials() -> None:
    client = ShipStationClient(api_key="", api_secret=" ")

    assert client.configured is False
    with pytest.raises(ShipStationNotConfiguredError) as exc_info:
        client.fetch_orders(None)
    assert exc_info.value.missing == ["SHIPSTATION_API_KEY", "SHIPSTATION_API_SECRET"]


def test_verify_credentials_lists_stores() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/stores"
        return httpx.Response(
            200,
            json=[{"storeId": 7, "storeName": "Etsy Shop", "marketplaceName": "Etsy"}],
            headers={"X-Rate-Limit-Remaining": "38"},
        )

    result = _client(handler, []).verify_credentials()

    assert result.valid is True
    assert result.rate_limit_remaining == 38
    assert result.stores[0].name == "Etsy Shop"


@pytest.mark.parametrize(
    ("status_code", "error_code"),
    [(401, "invalid_credentials"), (429, "rate_limited"), (503, "api_error")],
)
def test_verify_credentials_maps_failures(status_code: int, error_code: str) -> None:
    result = _client(lambda request: httpx.Response(status_code), []).verify_credentials()

    assert result.valid is False
    assert result.error_code == error_code


def test_resolve_modified_after_per_sync_type() -> None:
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    last_sync = datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc)

    assert resolve_modified_after("incremental", last_sync, now) == last_sync
    assert resolve_modified_after("incremental", None, now) == now - timedelta(days=7)
    assert resolve_modified_after("24h", last_sync, now) == now - timedelta(hours=24)
    assert resolve_modified_after("7d", last_sync, now) == now - timedelta(days=7)
    assert resolve_modified_after("30d", last_sync, now) == now - timedelta(days=30)
    assert resolve_modified_after("full", last_sync, now) == FULL_SYNC_START


def test_unknown_sync_type_falls_back_to_incremental() -> None:
    assert normalize_sync_type("weekly") == "incremental"
    assert normalize_sync_type(None) == "incremental"
    assert normalize_sync_type(" 24H ") == "24h"


def test_format_api_timestamp_treats_naive_values_as_utc() -> None:
    assert format_api_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05.000Z"
